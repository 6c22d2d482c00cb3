"""
Line-oriented fallback pass for state synchronization linting.

Re-derives the syntax-tree pass's signals from raw text:
- brace depth approximates function boundaries
- `type X = Rc<..>` / `fn f() -> Rc<..>` populate the alias/helper tables
- `move |`, `Closure::wrap`, ... mark closure-creating functions
- `let v = Rc::new(` / `let v = Alias::new(` / `let v = helper(` are
  construction candidates

It runs alone when tree-sitter rejects a file, and alongside the tree
pass otherwise to cover SS-002 and SS-005, which the tree pass does
not model.
"""

import re
from typing import List, Optional, Sequence, Set, Tuple

from statesync.report import Finding, Report
from statesync.rules import (
    Rule, RULE_SEVERITY, HANDLE_TYPES, CLOSURE_MARKERS, is_closure_factory_name,
)
from statesync.syntax import source_lines


FN_START = re.compile(
    r'^(?:pub(?:\([^)]*\))?\s+)?(?:const\s+)?(?:async\s+)?(?:unsafe\s+)?'
    r'(?:extern\s+"[^"]*"\s+)?fn\s+([A-Za-z_][A-Za-z0-9_]*)'
)
LET_BINDING = re.compile(r'^(\s*)let\s+(?:mut\s+)?([A-Za-z_][A-Za-z0-9_]*)')
TYPE_ALIAS = re.compile(r'^(?:pub(?:\([^)]*\))?\s+)?type\s+([A-Za-z_][A-Za-z0-9_]*)')
BORROW_CALL = re.compile(r'(?<![\w.])([A-Za-z_][A-Za-z0-9_]*)\s*\.\s*(?:borrow_mut|borrow|lock)\s*\(')

CONTEXT_WINDOW = 10


def detect_function_start(line: str) -> Optional[str]:
    """Name of the function whose signature starts on this line"""
    match = FN_START.match(line.strip())
    if match:
        return match.group(1)
    return None


def line_creates_closure(line: str) -> bool:
    trimmed = line.strip()
    return any(marker in trimmed for marker in CLOSURE_MARKERS)


def let_binding(line: str) -> Optional[Tuple[str, int]]:
    """(name, 1-indexed column) for `let [mut] name` lines"""
    match = LET_BINDING.match(line)
    if match:
        return match.group(2), match.start(2) + 1
    return None


def _word(name: str) -> str:
    # Whole-word occurrence not reached through a field access
    return rf'(?<![\w.]){re.escape(name)}\b'


class TextScanner:
    """
    Brace-depth tracking scanner for one file.

    Function start is a signature line (`fn`, `pub fn`, `pub(crate) fn`,
    `async fn`, ...). Function end is the first line where brace depth
    falls below the depth recorded after the signature line.
    """

    def __init__(self, filename: str = "<unknown>",
                 handle_types: Sequence[str] = HANDLE_TYPES):
        self.filename = filename
        self.handle_types = tuple(handle_types)
        self.aliases: Set[str] = set()
        self.helpers: Set[str] = set()
        self.findings: List[Finding] = []
        self._reported: Set[Tuple[str, int, str]] = set()

        names = "|".join(re.escape(t) for t in self.handle_types)
        self._handle_generic = re.compile(rf'(?<![\w])(?:\w+::)*(?:{names})\s*<')
        self._return_handle = re.compile(rf'->\s*(?:\w+::)*(?:{names})\s*<')

    def scan(self, source_code: str) -> Report:
        self.aliases = set()
        self.helpers = set()
        self.findings = []
        self._reported = set()

        lines = source_lines(source_code)
        report = Report(files_analyzed=1, lines_analyzed=len(lines))

        self._collect_type_info(lines)
        fns_with_closures = self._find_functions_with_closures(lines)

        current_fn: Optional[str] = None
        fn_has_closure = False
        brace_depth = 0
        fn_start_depth = 0
        local_handles: Set[str] = set()
        self_clones: Set[str] = set()

        for line_num, line in enumerate(lines, start=1):
            brace_depth += line.count('{')
            brace_depth = max(0, brace_depth - line.count('}'))

            fn_name = detect_function_start(line)
            if fn_name is not None:
                current_fn = fn_name
                fn_start_depth = brace_depth
                fn_has_closure = False
                local_handles = set()
                self_clones = set()

            if current_fn is not None and brace_depth < fn_start_depth:
                current_fn = None

            creates_closure = line_creates_closure(line)
            if creates_closure:
                fn_has_closure = True

            fn_label = current_fn or "<unknown>"
            by_name = is_closure_factory_name(current_fn or "")

            var = self._detect_local_handle_new(line)
            if var is not None:
                name, column = var
                local_handles.add(name)
                if fn_has_closure or fn_label in fns_with_closures or by_name:
                    self._add(
                        Rule.DIRECT_CONSTRUCTION, line_num, column,
                        f"Local `{name}` creates new Rc - if captured by closure, "
                        f"it will be disconnected from self",
                        f"Use `let {name}_clone = self.{name}.clone()` instead",
                    )

            aliased = self._detect_alias_new(line)
            if aliased is not None:
                alias, name, column = aliased
                local_handles.add(name)
                if fn_has_closure or by_name:
                    self._add(
                        Rule.ALIAS_CONSTRUCTION, line_num, column,
                        f"Type alias `{alias}::new()` creates local Rc - "
                        f"may cause state desync if captured in closure",
                        f"Use `self.{name}.clone()` instead of `{alias}::new()`",
                    )

            helper_call = self._detect_helper_call(line)
            if helper_call is not None:
                helper, name, column = helper_call
                local_handles.add(name)
                if fn_has_closure or by_name:
                    self._add(
                        Rule.HELPER_CONSTRUCTION, line_num, column,
                        f"Function `{helper}()` returns Rc - "
                        f"local assignment may cause state desync in closure",
                        "Clone from self instead of calling helper function",
                    )

            binding = let_binding(line)
            if binding is not None and "self." in line and ".clone()" in line:
                self_clones.add(binding[0])

            if creates_closure:
                self._check_closure_captures(line_num, lines, local_handles)

            if fn_has_closure and current_fn is not None:
                self._check_missing_self_clone(line, line_num, local_handles, self_clones)

        report.findings.extend(self.findings)
        return report

    # =========================================================================
    # Pre-passes
    # =========================================================================

    def _collect_type_info(self, lines: List[str]) -> None:
        for line_num, line in enumerate(lines, start=1):
            trimmed = line.strip()

            alias = TYPE_ALIAS.match(trimmed)
            if alias and "=" in trimmed:
                rhs = trimmed.split("=", 1)[1].strip()
                if self._handle_generic.match(rhs):
                    name = alias.group(1)
                    self.aliases.add(name)
                    self._add_info(
                        Rule.ALIAS_CONSTRUCTION, line_num,
                        f"Type alias `{name}` wraps Rc - usage with constructors "
                        f"may cause state desync",
                        "Consider using self.field.clone() pattern instead",
                    )

            if "fn " in trimmed and self._return_handle.search(trimmed):
                name = detect_function_start(trimmed)
                if name is not None:
                    self.helpers.add(name)
                    self._add_info(
                        Rule.HELPER_CONSTRUCTION, line_num,
                        f"Function `{name}` returns Rc - callers may create "
                        f"disconnected state",
                        "Document that callers should use self.field.clone() instead",
                    )

    def _find_functions_with_closures(self, lines: List[str]) -> Set[str]:
        result: Set[str] = set()
        current_fn: Optional[str] = None
        brace_depth = 0
        fn_start_depth = 0

        for line in lines:
            brace_depth += line.count('{')
            brace_depth = max(0, brace_depth - line.count('}'))

            fn_name = detect_function_start(line)
            if fn_name is not None:
                current_fn = fn_name
                fn_start_depth = brace_depth

            if current_fn is not None and brace_depth < fn_start_depth:
                current_fn = None

            if line_creates_closure(line) and current_fn is not None:
                result.add(current_fn)

        return result

    # =========================================================================
    # Construction candidates
    # =========================================================================

    def _detect_local_handle_new(self, line: str) -> Optional[Tuple[str, int]]:
        """`let [mut] v = ...Rc::new(` without the `.clone()` idiom"""
        binding = let_binding(line)
        if binding is None or ".clone()" in line:
            return None
        if any(f"{t}::new(" in line for t in self.handle_types):
            return binding
        return None

    def _detect_alias_new(self, line: str) -> Optional[Tuple[str, str, int]]:
        binding = let_binding(line)
        if binding is None:
            return None
        for alias in sorted(self.aliases):
            # Turbofish between the alias and `::new` is allowed
            pattern = rf'\b{re.escape(alias)}\s*(?:::\s*<[^=;]*?>\s*)?::\s*new\s*\('
            if re.search(pattern, line):
                return alias, binding[0], binding[1]
        return None

    def _detect_helper_call(self, line: str) -> Optional[Tuple[str, str, int]]:
        """`let v = Self::f(`, `let v = self.f(` or `let v = f(`"""
        binding = let_binding(line)
        if binding is None:
            return None
        for helper in sorted(self.helpers):
            if re.search(rf'\b{re.escape(helper)}\s*\(', line):
                return helper, binding[0], binding[1]
        return None

    # =========================================================================
    # Closure checks
    # =========================================================================

    def _check_closure_captures(self, line_num: int, lines: List[str],
                                local_handles: Set[str]) -> None:
        """SS-002: `self.v` and local `v` both referenced near a closure"""
        start = max(0, line_num - CONTEXT_WINDOW)
        end = min(len(lines), line_num + CONTEXT_WINDOW)

        for line in lines[start:end]:
            if self._detect_local_handle_new(line) is not None:
                continue
            for name in sorted(local_handles):
                if (re.search(rf'\bself\.{re.escape(name)}\b', line)
                        and re.search(_word(name), line)):
                    self._add(
                        Rule.CONFLICTING_REFERENCE, line_num, 1,
                        f"Potential state desync: both `self.{name}` and local "
                        f"`{name}` reference exist",
                        f"Ensure closure uses `self.{name}.clone()`, not a local Rc",
                        key=name,
                    )

    def _check_missing_self_clone(self, line: str, line_num: int,
                                  local_handles: Set[str], self_clones: Set[str]) -> None:
        """SS-005: closure work on a handle that was not cloned from self"""
        if line_creates_closure(line):
            for name in sorted(local_handles):
                if name.endswith("_clone") or name in self_clones:
                    continue
                if re.search(_word(name), line):
                    self._add(
                        Rule.MISSING_SELF_CLONE, line_num, 1,
                        f"Closure may capture local `{name}` - ensure "
                        f"`self.{name}.clone()` is used",
                        f"Add `let {name}_clone = self.{name}.clone();` before closure",
                        key=name,
                    )
                    return

        if "self." in line:
            return
        for match in BORROW_CALL.finditer(line):
            name = match.group(1)
            if name == "self" or name.endswith("_clone") or name in self_clones:
                continue
            self._add(
                Rule.MISSING_SELF_CLONE, line_num, match.start(1) + 1,
                f"Using `{name}` directly - may be disconnected from self",
                f"Use `let {name}_clone = self.{name}.clone();` before closure",
                key=name,
            )
            return

    # =========================================================================
    # Reporting
    # =========================================================================

    def _add(self, rule: Rule, line: int, column: int, message: str,
             suggestion: str, key: str = "") -> None:
        dedup = (rule.code, line, key)
        if dedup in self._reported:
            return
        self._reported.add(dedup)
        finding = Finding(
            rule_code=rule.code,
            severity=RULE_SEVERITY[rule],
            message=message,
            file=self.filename,
        )
        self.findings.append(finding.at(line, max(1, column)).with_suggestion(suggestion))

    def _add_info(self, rule: Rule, line: int, message: str, suggestion: str) -> None:
        self.findings.append(
            Finding.info(self.filename, rule.code, message)
            .at(line, 1)
            .with_suggestion(suggestion)
        )


def lint_source_text(source_code: str, filename: str = "<unknown>",
                     handle_types: Sequence[str] = HANDLE_TYPES) -> Report:
    """
    Run the textual pass over one file.

    Args:
        source_code: Rust source text
        filename: Display path used in findings
        handle_types: Shared-ownership handle type names

    Returns:
        Report with files_analyzed=1
    """
    scanner = TextScanner(filename, handle_types)
    return scanner.scan(source_code)
