#!/usr/bin/env python3
"""
statesync CLI.

Command-line interface for linting Rust code for state synchronization
bugs.

Usage:
    # Lint a single file
    python -m statesync lint src/worker.rs

    # Lint a crate, JSON output
    python -m statesync lint src/ --format json -o statesync.json

    # Also treat a custom handle type as shared ownership
    python -m statesync lint src/ --handle-type SharedPtr

    # List the rule catalogue, or describe one rule
    python -m statesync rules
    python -m statesync rules SS-009
"""

import argparse
import sys
from pathlib import Path
from typing import List

from statesync.linter import StateSyncLinter
from statesync.report import Report, Severity
from statesync.rules import HANDLE_TYPES, RULE_DESCRIPTIONS, RULE_SEVERITY, Rule, rule_for_code


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        prog="statesync",
        description="State synchronization linter - detects closures capturing "
                    "locally constructed Rc/Arc instead of self's",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    lint_parser = subparsers.add_parser("lint", help="Lint Rust files")
    lint_parser.add_argument(
        "target",
        help="File or directory to lint"
    )
    lint_parser.add_argument(
        "-f", "--format",
        default="text",
        choices=["text", "json"],
        help="Output format (default: text)"
    )
    lint_parser.add_argument(
        "-o", "--output",
        help="Output file (default: stdout)"
    )
    lint_parser.add_argument(
        "--min-severity",
        default="info",
        choices=["error", "warning", "info"],
        help="Minimum severity to report (default: info)"
    )
    lint_parser.add_argument(
        "--fail-on",
        default="error",
        choices=["error", "warning", "info", "any", "none"],
        help="Exit with error if findings of this severity exist (default: error)"
    )
    lint_parser.add_argument(
        "--handle-type",
        action="append",
        dest="handle_types",
        metavar="NAME",
        help=f"Additional shared-ownership handle type (built in: {', '.join(HANDLE_TYPES)})"
    )
    lint_parser.add_argument(
        "--no-text-pass",
        action="store_true",
        help="Only use the text scanner for files that do not parse"
    )
    lint_parser.add_argument(
        "--prescan-closures",
        action="store_true",
        help="Flag constructions that precede the first closure in a function"
    )
    lint_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    rules_parser = subparsers.add_parser("rules", help="List rule codes")
    rules_parser.add_argument(
        "code",
        nargs="?",
        help="Only describe this rule (e.g. SS-001)"
    )

    return parser


def format_text_report(report: Report) -> str:
    """Format report as human-readable text"""
    lines = []

    for finding in report.findings:
        lines.append(f"{finding.severity.symbol} {finding}")

    if not report.findings:
        lines.append("✅ No state synchronization issues found")

    lines.append("")
    lines.append(
        f"{report.error_count} error(s), {report.warning_count} warning(s) "
        f"in {report.files_analyzed} file(s) ({report.lines_analyzed} lines)"
    )
    return "\n".join(lines)


def should_fail(report: Report, fail_on: str) -> bool:
    """Determine if lint should fail based on findings"""
    if fail_on == "none":
        return False

    if fail_on == "any":
        return bool(report.findings)

    threshold = Severity.parse(fail_on)
    return any(f.severity.rank >= threshold.rank for f in report.findings)


def main(argv: List[str] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "lint":
        return cmd_lint(args)
    elif args.command == "rules":
        return cmd_rules(args)

    return 0


def cmd_lint(args) -> int:
    """Execute lint command"""
    target = Path(args.target)

    if not target.exists():
        print(f"Error: Target not found: {args.target}", file=sys.stderr)
        return 1

    handle_types = list(HANDLE_TYPES)
    for name in args.handle_types or []:
        if name not in handle_types:
            handle_types.append(name)

    try:
        linter = StateSyncLinter(
            handle_types=handle_types,
            text_pass=not args.no_text_pass,
            prescan_closures=args.prescan_closures,
            verbose=args.verbose,
        )
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Install tree-sitter: pip install tree-sitter tree-sitter-rust", file=sys.stderr)
        return 1

    report = linter.lint_path(target)
    shown = report.filtered(Severity.parse(args.min_severity))

    if args.format == "json":
        output = shown.to_json()
    else:
        output = format_text_report(shown)

    if args.output:
        with open(args.output, 'w') as f:
            f.write(output + "\n")
    else:
        print(output)

    if should_fail(report, args.fail_on):
        return 1

    return 0


def format_rule(rule: Rule) -> str:
    severity = RULE_SEVERITY[rule].value
    if rule in (Rule.ALIAS_CONSTRUCTION, Rule.HELPER_CONSTRUCTION):
        severity = f"{Severity.INFO.value}/{severity}"
    return f"{rule.code}  {severity:<14} {RULE_DESCRIPTIONS[rule]}"


def cmd_rules(args) -> int:
    """Execute rules command"""
    if args.code:
        try:
            rules = [rule_for_code(args.code.upper())]
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        rules = list(Rule)

    for rule in rules:
        print(format_rule(rule))
    return 0


if __name__ == "__main__":
    sys.exit(main())
