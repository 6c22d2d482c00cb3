"""
State synchronization linter for Rust.

Detects closures that capture a freshly constructed shared-ownership
handle (Rc/Arc) instead of a clone of the handle the enclosing object
already owns. The closure then mutates a disconnected copy of the state
while the object keeps observing the original.

The library is organized into modules:
- report: Finding and Report model
- rules: rule catalogue and pattern vocabulary
- syntax: lowered Rust syntax tree
- frontends: tree-sitter Rust frontend
- analyzers: symbol tables, closure context, construction patterns,
  tree visitor and text scanner
- linter: per-file and per-directory orchestration
- cli: command-line interface
"""

from statesync.errors import StateSyncError, RustParseError
from statesync.report import Severity, Finding, Report
from statesync.rules import Rule
from statesync.linter import StateSyncLinter, lint_source, merge_deduplicated

__version__ = "0.1.0"
__all__ = [
    "StateSyncError", "RustParseError",
    "Severity", "Finding", "Report",
    "Rule",
    "StateSyncLinter", "lint_source", "merge_deduplicated",
]
