"""
Per-file symbol tables for statesync.

Collects, from declarations only:
- type aliases whose outermost constructor is a handle type
  (`type StatePtr = Rc<RefCell<State>>;`)
- functions and methods whose declared return type is a handle type
  (`fn make_state() -> Rc<RefCell<State>>`)

Statements in function bodies are never inspected, only the items
declared among them. Items nested in impl, trait and mod blocks are
included so the tables are complete before the visitor enters any
function body.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Set

from statesync.report import Finding
from statesync.rules import Rule, HANDLE_TYPES
from statesync.syntax import (
    TypeRef, Item, ItemFn, ItemTypeAlias, ItemImpl, ItemTrait, ItemMod,
    StmtItem, ExprBlock,
)


@dataclass
class SymbolTable:
    """Alias and helper-function names for one file"""
    aliases: Set[str] = field(default_factory=set)
    helpers: Set[str] = field(default_factory=set)


class SymbolCollector:
    """
    File-wide declaration pre-pass.

    Emits one Info finding per alias (SS-006) and per helper (SS-007);
    these audit the exposure surface and are not failures.
    """

    def __init__(self, filename: str = "<unknown>",
                 handle_types: Sequence[str] = HANDLE_TYPES):
        self.filename = filename
        self.handle_types = set(handle_types)
        self.table = SymbolTable()
        self.findings: List[Finding] = []

    def collect(self, items: List[Item]) -> SymbolTable:
        """Populate the table from a file's items and return it"""
        for item in items:
            self._collect_item(item)
        return self.table

    def is_handle_type(self, ty: TypeRef) -> bool:
        return ty.name in self.handle_types

    def _collect_item(self, item: Item) -> None:
        if isinstance(item, ItemTypeAlias):
            if self.is_handle_type(item.type):
                self.table.aliases.add(item.name)
                self.findings.append(
                    Finding.info(
                        self.filename, Rule.ALIAS_CONSTRUCTION.code,
                        f"Type alias `{item.name}` wraps {item.type.name} - "
                        f"usage with constructors may cause state desync",
                    )
                    .at(item.location.line, 1)
                    .with_suggestion("Consider using self.field.clone() pattern instead")
                )

        elif isinstance(item, ItemFn):
            if item.return_type is not None and self.is_handle_type(item.return_type):
                self.table.helpers.add(item.name)
                kind = "Method" if item.is_method else "Function"
                self.findings.append(
                    Finding.info(
                        self.filename, Rule.HELPER_CONSTRUCTION.code,
                        f"{kind} `{item.name}` returns {item.return_type.name} - "
                        f"callers may create disconnected state",
                    )
                    .at(item.location.line, 1)
                    .with_suggestion("Document that callers should use self.field.clone() instead")
                )
            if item.body is not None:
                self._collect_block(item.body)

        elif isinstance(item, (ItemImpl, ItemTrait, ItemMod)):
            for inner in item.items:
                self._collect_item(inner)

    def _collect_block(self, block: ExprBlock) -> None:
        # Items declared inside a function body are still declarations
        for stmt in block.stmts:
            if isinstance(stmt, StmtItem):
                self._collect_item(stmt.item)
