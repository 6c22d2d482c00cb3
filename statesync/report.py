"""
Finding and Report model shared by every statesync rule.

Usage:
    from statesync.report import Finding, Report

    report = Report(files_analyzed=1)
    report.add(
        Finding.error("src/worker.rs", "SS-001", "Local `state` creates new Rc")
        .at(12, 9)
        .with_suggestion("Use `let state_clone = self.state.clone()` instead")
    )
    print(report.error_count)
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional
from enum import Enum
import json


class Severity(Enum):
    """Finding severity levels"""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    def __str__(self) -> str:
        return self.value

    @property
    def token(self) -> str:
        return {
            Severity.ERROR: "ERROR",
            Severity.WARNING: "WARN",
            Severity.INFO: "INFO",
        }[self]

    @property
    def symbol(self) -> str:
        return {
            Severity.ERROR: "✗",
            Severity.WARNING: "⚠",
            Severity.INFO: "ℹ",
        }[self]

    @property
    def rank(self) -> int:
        return {
            Severity.ERROR: 3,
            Severity.WARNING: 2,
            Severity.INFO: 1,
        }[self]

    @classmethod
    def parse(cls, name: str) -> 'Severity':
        """Parse a severity name ("error", "warn", "warning", "info")"""
        name = name.lower()
        if name == "warn":
            return cls.WARNING
        return cls(name)


@dataclass(frozen=True)
class Finding:
    """
    A single rule violation at a source location.

    Findings are immutable; `at` and `with_suggestion` return updated
    copies so they can be chained off the severity constructors.
    """
    rule_code: str
    severity: Severity
    message: str
    file: str
    line: int = 1
    column: int = 1
    suggestion: Optional[str] = None

    def __post_init__(self):
        if not self.rule_code:
            raise ValueError("Finding rule_code must not be empty")
        if self.line < 1:
            raise ValueError(f"Finding line must be >= 1, got {self.line}")
        if self.column < 1:
            raise ValueError(f"Finding column must be >= 1, got {self.column}")

    @classmethod
    def error(cls, file: str, code: str, message: str) -> 'Finding':
        return cls(rule_code=code, severity=Severity.ERROR, message=message, file=file)

    @classmethod
    def warning(cls, file: str, code: str, message: str) -> 'Finding':
        return cls(rule_code=code, severity=Severity.WARNING, message=message, file=file)

    @classmethod
    def info(cls, file: str, code: str, message: str) -> 'Finding':
        return cls(rule_code=code, severity=Severity.INFO, message=message, file=file)

    def at(self, line: int, column: int = 1) -> 'Finding':
        return replace(self, line=line, column=column)

    def with_suggestion(self, suggestion: str) -> 'Finding':
        return replace(self, suggestion=suggestion)

    def __str__(self) -> str:
        text = (f"{self.severity}[{self.rule_code}]: {self.message} "
                f"({self.file}:{self.line}:{self.column})")
        if self.suggestion:
            text += f"\n  = help: {self.suggestion}"
        return text

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "rule": self.rule_code,
            "severity": self.severity.value,
            "message": self.message,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "suggestion": self.suggestion,
        }


@dataclass
class Report:
    """Findings and counters for one file or a whole project"""
    findings: List[Finding] = field(default_factory=list)
    files_analyzed: int = 0
    lines_analyzed: int = 0

    def add(self, finding: Finding) -> None:
        self.findings.append(finding)

    def has_errors(self) -> bool:
        return any(f.severity == Severity.ERROR for f in self.findings)

    @property
    def error_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == Severity.WARNING)

    @property
    def info_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == Severity.INFO)

    def merge(self, other: 'Report') -> 'Report':
        """
        Merge another report into this one.

        Findings are concatenated and totals summed. No deduplication
        happens here; see statesync.linter.merge_deduplicated.
        """
        self.findings.extend(other.findings)
        self.files_analyzed += other.files_analyzed
        self.lines_analyzed += other.lines_analyzed
        return self

    def filtered(self, min_severity: Severity) -> 'Report':
        """Copy of this report keeping findings at or above min_severity"""
        return Report(
            findings=[f for f in self.findings if f.severity.rank >= min_severity.rank],
            files_analyzed=self.files_analyzed,
            lines_analyzed=self.lines_analyzed,
        )

    def to_dict(self) -> dict:
        return {
            "findings": [f.to_dict() for f in self.findings],
            "files_analyzed": self.files_analyzed,
            "lines_analyzed": self.lines_analyzed,
            "summary": {
                "total": len(self.findings),
                "errors": self.error_count,
                "warnings": self.warning_count,
                "info": self.info_count,
            }
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
