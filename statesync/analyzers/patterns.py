"""
Construction-pattern matching.

Decides whether the initializer of a `let` produces a fresh shared
handle, and which rule the construction falls under:

    let s = Rc::new(RefCell::new(0));            # DIRECT          SS-001
    let s = unsafe { Rc::from_raw(p) };          # UNSAFE_RELAUNDER SS-009
    let s = StatePtr::<i32>::new(..);            # ALIAS           SS-006
    let s = make_state();                        # HELPER          SS-007
    let s = value.to_rc();                       # METHOD_CHAIN    SS-008
"""

from dataclasses import dataclass
from typing import Optional, Sequence
from enum import Enum

from statesync.report import Severity
from statesync.rules import (
    Rule, RULE_SEVERITY, HANDLE_TYPES, WEAK_TYPES,
    CONSTRUCTOR_METHODS, RELAUNDER_METHODS, METHOD_CHAIN_NAMES,
)
from statesync.syntax import (
    Expr, ExprPath, ExprField, ExprCall, ExprMethodCall, ExprBlock, ExprOther,
    StmtExpr, BlockKind,
)
from statesync.analyzers.context import ClosureContext
from statesync.analyzers.symbols import SymbolTable


DEFAULT_MAX_UNWRAP_DEPTH = 32


class ConstructionKind(Enum):
    """How a local came to hold a fresh handle"""
    UNSAFE_RELAUNDER = "unsafe_relaunder"
    ALIAS = "alias"
    HELPER = "helper"
    DIRECT = "direct"
    METHOD_CHAIN = "method_chain"

    @property
    def rule(self) -> Rule:
        return {
            ConstructionKind.UNSAFE_RELAUNDER: Rule.UNSAFE_RELAUNDER,
            ConstructionKind.ALIAS: Rule.ALIAS_CONSTRUCTION,
            ConstructionKind.HELPER: Rule.HELPER_CONSTRUCTION,
            ConstructionKind.DIRECT: Rule.DIRECT_CONSTRUCTION,
            ConstructionKind.METHOD_CHAIN: Rule.METHOD_CHAIN,
        }[self]

    @property
    def severity(self) -> Severity:
        return RULE_SEVERITY[self.rule]


@dataclass(frozen=True)
class Construction:
    kind: ConstructionKind
    constructor: str


def unwrap_block(expr: Expr, max_depth: int = DEFAULT_MAX_UNWRAP_DEPTH) -> Expr:
    """
    Replace `{ ...; e }` / `unsafe { e }` / `const { e }` with `e`.

    Repeats while the result is still such a block, at most max_depth
    times. The last statement counts with or without a trailing
    semicolon. Async blocks are left alone since they evaluate to a
    future rather than to their tail expression.
    """
    for _ in range(max_depth):
        if not isinstance(expr, ExprBlock) or expr.kind == BlockKind.ASYNC:
            break
        if not expr.stmts or not isinstance(expr.stmts[-1], StmtExpr):
            break
        expr = expr.stmts[-1].expr
    return expr


def is_self_field(expr: Expr) -> bool:
    """`self.field`"""
    return (isinstance(expr, ExprField)
            and isinstance(expr.base, ExprPath)
            and expr.base.segments == ["self"])


def _strip_reference(expr: Expr) -> Expr:
    if (isinstance(expr, ExprOther) and expr.kind == "reference_expression"
            and len(expr.children) == 1):
        return expr.children[0]
    return expr


class ConstructionMatcher:
    """
    Classifies `let` initializers against the per-file symbol table.

    Kinds are checked most specific first: relaunder, alias, helper,
    direct, method chain. A call shape can only match one of them except
    where an alias or helper name shadows a handle type, in which case
    the alias or helper wins.
    """

    def __init__(self, symbols: SymbolTable,
                 handle_types: Sequence[str] = HANDLE_TYPES,
                 weak_types: Sequence[str] = WEAK_TYPES,
                 max_unwrap_depth: int = DEFAULT_MAX_UNWRAP_DEPTH):
        self.symbols = symbols
        self.handle_types = set(handle_types)
        self.relaunder_types = self.handle_types | set(weak_types)
        self.max_unwrap_depth = max_unwrap_depth

    def match(self, expr: Optional[Expr], context: ClosureContext) -> Optional[Construction]:
        if expr is None:
            return None
        expr = unwrap_block(expr, self.max_unwrap_depth)
        if isinstance(expr, ExprCall):
            return self._match_call(expr)
        if isinstance(expr, ExprMethodCall):
            return self._match_method_call(expr, context)
        return None

    def _match_call(self, call: ExprCall) -> Optional[Construction]:
        if not isinstance(call.func, ExprPath) or not call.func.segments:
            return None

        segments = call.func.segments
        method = segments[-1]
        type_name = segments[-2] if len(segments) >= 2 else ""
        constructor = f"{type_name}::{method}" if type_name else method

        if type_name in self.relaunder_types and method in RELAUNDER_METHODS:
            return Construction(ConstructionKind.UNSAFE_RELAUNDER, constructor)

        if method in CONSTRUCTOR_METHODS and type_name:
            if segments[0] in self.symbols.aliases:
                return Construction(ConstructionKind.ALIAS, f"{segments[0]}::{method}")
            if type_name in self.symbols.aliases:
                return Construction(ConstructionKind.ALIAS, constructor)

        if method in self.symbols.helpers:
            if len(segments) == 1 or (len(segments) == 2 and segments[0] == "Self"):
                return Construction(ConstructionKind.HELPER, str(call.func))

        if type_name in self.handle_types and method in CONSTRUCTOR_METHODS:
            return Construction(ConstructionKind.DIRECT, constructor)

        return None

    def _match_method_call(self, call: ExprMethodCall,
                           context: ClosureContext) -> Optional[Construction]:
        receiver = call.receiver

        if (call.method in self.symbols.helpers and isinstance(receiver, ExprPath)
                and receiver.segments == ["self"]):
            return Construction(ConstructionKind.HELPER, f"self.{call.method}")

        if call.method in METHOD_CHAIN_NAMES:
            return Construction(ConstructionKind.METHOD_CHAIN, f".{call.method}()")

        if call.method == "clone" and self._is_existing_handle(receiver, context):
            return Construction(ConstructionKind.METHOD_CHAIN, ".clone()")

        return None

    def _is_existing_handle(self, expr: Expr, context: ClosureContext) -> bool:
        expr = _strip_reference(expr)
        if is_self_field(expr):
            return True
        return (isinstance(expr, ExprPath) and len(expr.segments) == 1
                and context.is_tracked(expr.segments[0]))
