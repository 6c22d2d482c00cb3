"""
Analysis passes for statesync.

- symbols: per-file alias and helper-function tables
- context: per-function closure-factory state
- patterns: construction-pattern matching
- ast_visitor: syntax-tree pass
- text_scanner: line-oriented fallback pass
"""

from statesync.analyzers.symbols import SymbolCollector, SymbolTable
from statesync.analyzers.context import ClosureContext, ContextTracker
from statesync.analyzers.patterns import (
    ConstructionMatcher,
    ConstructionKind,
    Construction,
    unwrap_block,
)
from statesync.analyzers.ast_visitor import StateSyncVisitor, lint_source_ast
from statesync.analyzers.text_scanner import TextScanner, lint_source_text

__all__ = [
    "SymbolCollector",
    "SymbolTable",
    "ClosureContext",
    "ContextTracker",
    "ConstructionMatcher",
    "ConstructionKind",
    "Construction",
    "unwrap_block",
    "StateSyncVisitor",
    "lint_source_ast",
    "TextScanner",
    "lint_source_text",
]
