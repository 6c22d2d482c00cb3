"""
State Synchronization Linter.

High-level interface combining the two analysis passes:
    Source Code → Rust frontend → Tree visitor ─┐
                                                ├→ merge + dedupe → Report
    Source Code → Text scanner ─────────────────┘

When tree-sitter rejects a file, only the text scanner runs.

Usage:
    from statesync.linter import StateSyncLinter

    linter = StateSyncLinter()
    report = linter.lint_directory("src/")

    for finding in report.findings:
        print(finding)
"""

import sys
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence, Union

from statesync.errors import RustParseError
from statesync.report import Finding, Report
from statesync.rules import Rule, HANDLE_TYPES
from statesync.frontends.rust_frontend import RustFrontend
from statesync.analyzers.ast_visitor import lint_source_ast
from statesync.analyzers.text_scanner import lint_source_text


SOURCE_EXTENSIONS = (".rs",)

# Build-output and dependency directories never worth linting
SKIP_DIRS = {"target", "node_modules", "build", "dist"}


def merge_deduplicated(primary: Report, secondary: Report) -> Report:
    """
    Combine two passes over the same file.

    Findings from `secondary` are kept only if no finding with the same
    (rule_code, file, line) is already present. Counters come from
    `primary` since both passes saw the same file.
    """
    merged = Report(
        findings=list(primary.findings),
        files_analyzed=primary.files_analyzed,
        lines_analyzed=primary.lines_analyzed,
    )
    seen = {(f.rule_code, f.file, f.line) for f in merged.findings}
    for finding in secondary.findings:
        key = (finding.rule_code, finding.file, finding.line)
        if key not in seen:
            seen.add(key)
            merged.add(finding)
    return merged


def iter_source_files(root: Path,
                      on_error: Optional[Callable[[Path, OSError], None]] = None
                      ) -> Iterator[Path]:
    """
    Rust files under root, skipping hidden and build dirs.

    Each directory yields its files in sorted order before its
    subdirectories. Symlinked directories are not followed. A directory
    that cannot be listed is passed to on_error and skipped.
    """
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            entries = sorted(current.iterdir())
        except OSError as e:
            if on_error is not None:
                on_error(current, e)
            continue

        subdirs = []
        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                if entry.is_symlink() or entry.name in SKIP_DIRS:
                    continue
                subdirs.append(entry)
            elif entry.is_file() and entry.suffix in SOURCE_EXTENSIONS:
                yield entry
        stack.extend(reversed(subdirs))


class StateSyncLinter:
    """
    Detects closures that capture a freshly constructed shared handle
    instead of a clone of the owning object's field.
    """

    def __init__(
        self,
        handle_types: Sequence[str] = HANDLE_TYPES,
        text_pass: bool = True,
        prescan_closures: bool = False,
        max_depth: int = 128,
        verbose: bool = False,
    ):
        """
        Initialize the linter.

        Args:
            handle_types: Shared-ownership handle type names
            text_pass: Merge the text scanner's findings into the tree
                pass's findings (the text scanner always runs when a
                file does not parse)
            prescan_closures: Treat a function as a closure factory from
                its first line if its body contains any closure
            max_depth: Syntax nesting depth lowered by the frontend
            verbose: Print progress to stderr
        """
        self.handle_types = tuple(handle_types)
        self.text_pass = text_pass
        self.prescan_closures = prescan_closures
        self.verbose = verbose

        self.frontend = RustFrontend(max_depth=max_depth)

    def _log(self, message: str) -> None:
        if self.verbose:
            print(f"[StateSync] {message}", file=sys.stderr)

    def lint_source(self, source_code: str, filename: str = "<unknown>") -> Report:
        """
        Lint source code directly.

        Args:
            source_code: Rust source text
            filename: Display path used in findings

        Returns:
            Report for this one file
        """
        try:
            ast_report = lint_source_ast(
                source_code,
                filename,
                frontend=self.frontend,
                handle_types=self.handle_types,
                prescan_closures=self.prescan_closures,
            )
        except RustParseError as e:
            self._log(f"{e}; falling back to text scan")
            return lint_source_text(source_code, filename, self.handle_types)
        except RecursionError:
            self._log(f"Nesting too deep in {filename}; falling back to text scan")
            return lint_source_text(source_code, filename, self.handle_types)

        self._log(f"Tree pass found {len(ast_report.findings)} findings in {filename}")
        if not self.text_pass:
            return ast_report

        text_report = lint_source_text(source_code, filename, self.handle_types)
        report = merge_deduplicated(ast_report, text_report)
        self._log(f"After merging text pass: {len(report.findings)} findings in {filename}")
        return report

    def lint_file(self, filepath: Union[str, Path]) -> Report:
        """
        Lint one file.

        An unreadable file yields a single SS-000 error and still counts
        as analyzed. Undecodable bytes are replaced rather than rejected.
        """
        path = Path(filepath)
        try:
            data = path.read_bytes()
        except OSError as e:
            report = Report(files_analyzed=1)
            report.add(self._read_failure(path, e))
            return report

        try:
            source_code = data.decode("utf-8")
        except UnicodeDecodeError:
            self._log(f"{path} is not valid UTF-8; decoding with replacement")
            source_code = data.decode("utf-8", errors="replace")

        return self.lint_source(source_code, str(path))

    def lint_directory(self, dirpath: Union[str, Path]) -> Report:
        """
        Lint all Rust files under a directory.

        Hidden entries, symlinked directories and build directories
        (target, node_modules, ...) are skipped. A directory that cannot
        be listed adds an SS-000 error and the walk continues.
        """
        report = Report()

        def on_error(path: Path, error: OSError) -> None:
            report.add(self._read_failure(path, error))

        for path in iter_source_files(Path(dirpath), on_error):
            self._log(f"Linting {path}")
            report.merge(self.lint_file(path))
        self._log(f"Analyzed {report.files_analyzed} files, {report.lines_analyzed} lines")
        return report

    def _read_failure(self, path: Path, error: OSError) -> Finding:
        self._log(f"Failed to read {path}: {error}")
        return Finding.error(
            str(path), Rule.READ_FAILURE.code, f"Failed to read {path}: {error}"
        )

    def lint_path(self, target: Union[str, Path]) -> Report:
        """Lint a file or a directory"""
        target = Path(target)
        if target.is_dir():
            return self.lint_directory(target)
        return self.lint_file(target)


def lint_source(source_code: str, filename: str = "<unknown>", **options) -> Report:
    """
    Convenience function to lint source code.

    Args:
        source_code: Rust source text
        filename: Display path used in findings
        **options: Forwarded to StateSyncLinter

    Returns:
        Report for this one file
    """
    return StateSyncLinter(**options).lint_source(source_code, filename)
