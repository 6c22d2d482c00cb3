"""
Exceptions raised by the statesync engine.

Rule findings are not exceptions; they are collected in a Report.
These classes cover the few conditions the engine cannot express as a
finding by itself (a source file the Rust grammar rejects, for example).
"""

from typing import Optional


class StateSyncError(Exception):
    """Base class for statesync errors"""


class RustParseError(StateSyncError):
    """
    Raised when tree-sitter cannot produce an error-free tree.

    The orchestrator catches this and falls back to the textual scanner.
    """

    def __init__(self, filename: str, line: Optional[int] = None,
                 column: Optional[int] = None):
        self.filename = filename
        self.line = line
        self.column = column
        where = filename
        if line is not None:
            where = f"{filename}:{line}:{column or 1}"
        super().__init__(f"Parse error in {where}")
