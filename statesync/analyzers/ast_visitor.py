"""
Syntax-tree pass for state synchronization linting.

Walks the lowered tree of one file depth-first:
1. SymbolCollector builds the alias/helper tables for the whole file.
2. Each function gets a ClosureContext (name heuristic at entry).
3. Every `let name = init` is matched against the construction
   patterns; matches are tracked as local handles and reported when the
   function is a closure factory.
4. Closure literals and `Closure::*` calls upgrade the context.

Usage:
    from statesync.analyzers.ast_visitor import lint_source_ast

    report = lint_source_ast(source_code, "src/worker.rs")
"""

from typing import Iterator, List, Optional, Sequence

from statesync.report import Finding, Report
from statesync.rules import HANDLE_TYPES, CLOSURE_TYPE
from statesync.syntax import (
    Node, Expr, Stmt, Item, SourceFile, source_lines,
    ExprPath, ExprField, ExprCall, ExprMethodCall, ExprClosure,
    ExprBlock, ExprOther,
    StmtLocal, StmtExpr, StmtItem,
    ItemFn, ItemImpl, ItemTrait, ItemMod,
)
from statesync.analyzers.context import ContextTracker
from statesync.analyzers.patterns import (
    ConstructionMatcher, ConstructionKind, Construction,
    DEFAULT_MAX_UNWRAP_DEPTH,
)
from statesync.analyzers.symbols import SymbolCollector


def child_nodes(node: Node) -> Iterator[Node]:
    """Direct children of a lowered node, in source order"""
    if isinstance(node, ExprField):
        yield node.base
    elif isinstance(node, ExprCall):
        yield node.func
        yield from node.args
    elif isinstance(node, ExprMethodCall):
        yield node.receiver
        yield from node.args
    elif isinstance(node, ExprClosure):
        if node.body is not None:
            yield node.body
    elif isinstance(node, ExprBlock):
        yield from node.stmts
    elif isinstance(node, ExprOther):
        yield from node.children
    elif isinstance(node, StmtLocal):
        if node.init is not None:
            yield node.init
        if node.else_block is not None:
            yield node.else_block
    elif isinstance(node, StmtExpr):
        yield node.expr
    elif isinstance(node, StmtItem):
        yield node.item


def contains_closure(body: ExprBlock) -> bool:
    """
    Shallow closure pre-scan of one function body.

    Nested function items are not entered; they get their own context.
    """
    stack: List[Node] = [body]
    while stack:
        node = stack.pop()
        if isinstance(node, ExprClosure):
            return True
        if isinstance(node, ExprCall) and _is_closure_call(node):
            return True
        if isinstance(node, StmtItem):
            continue
        stack.extend(child_nodes(node))
    return False


def _is_closure_call(call: ExprCall) -> bool:
    return isinstance(call.func, ExprPath) and call.func.first == CLOSURE_TYPE


class StateSyncVisitor:
    """
    Detects locally constructed handles in closure-creating functions.

    One visitor analyzes one file; create a new one per file.
    """

    def __init__(
        self,
        filename: str = "<unknown>",
        handle_types: Sequence[str] = HANDLE_TYPES,
        prescan_closures: bool = False,
        max_unwrap_depth: int = DEFAULT_MAX_UNWRAP_DEPTH,
    ):
        """
        Args:
            filename: Display path used in findings
            handle_types: Shared-ownership handle type names
            prescan_closures: Treat a function as a closure factory from
                entry if its body contains a closure anywhere
            max_unwrap_depth: Bound for nested block unwrapping
        """
        self.filename = filename
        self.handle_types = tuple(handle_types)
        self.prescan_closures = prescan_closures
        self.max_unwrap_depth = max_unwrap_depth

        self.findings: List[Finding] = []
        self.tracker = ContextTracker()
        self.matcher: Optional[ConstructionMatcher] = None

    def visit_file(self, source_file: SourceFile) -> List[Finding]:
        collector = SymbolCollector(self.filename, self.handle_types)
        symbols = collector.collect(source_file.items)
        self.findings.extend(collector.findings)

        self.matcher = ConstructionMatcher(
            symbols,
            handle_types=self.handle_types,
            max_unwrap_depth=self.max_unwrap_depth,
        )
        for item in source_file.items:
            self.visit_item(item)
        return self.findings

    # =========================================================================
    # Items
    # =========================================================================

    def visit_item(self, item: Item) -> None:
        if isinstance(item, ItemFn):
            self.visit_fn(item)
        elif isinstance(item, (ItemImpl, ItemTrait, ItemMod)):
            for inner in item.items:
                self.visit_item(inner)

    def visit_fn(self, fn: ItemFn) -> None:
        if fn.body is None:
            return

        ctx = self.tracker.enter_function(fn.name)
        if self.prescan_closures and contains_closure(fn.body):
            ctx.upgrade()
        try:
            self.visit_block(fn.body)
        finally:
            self.tracker.exit_function()

    # =========================================================================
    # Statements
    # =========================================================================

    def visit_block(self, block: ExprBlock) -> None:
        for stmt in block.stmts:
            self.visit_stmt(stmt)

    def visit_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, StmtLocal):
            self.visit_local(stmt)
        elif isinstance(stmt, StmtExpr):
            self.visit_expr(stmt.expr)
        elif isinstance(stmt, StmtItem):
            self.visit_item(stmt.item)

    def visit_local(self, local: StmtLocal) -> None:
        if local.init is not None and local.name:
            ctx = self.tracker.current
            construction = self.matcher.match(local.init, ctx)
            if construction is not None:
                ctx.track(local.name)
                if ctx.creates_closures:
                    self._report(local, construction)

        if local.init is not None:
            self.visit_expr(local.init)
        if local.else_block is not None:
            self.visit_block(local.else_block)

    # =========================================================================
    # Expressions
    # =========================================================================

    def visit_expr(self, expr: Expr) -> None:
        if isinstance(expr, ExprClosure):
            self.tracker.observe_closure()
            if expr.body is not None:
                self.visit_expr(expr.body)

        elif isinstance(expr, ExprCall):
            if _is_closure_call(expr):
                self.tracker.observe_closure()
            for arg in expr.args:
                self.visit_expr(arg)

        elif isinstance(expr, ExprMethodCall):
            self.visit_expr(expr.receiver)
            for arg in expr.args:
                self.visit_expr(arg)

        elif isinstance(expr, ExprField):
            self.visit_expr(expr.base)

        elif isinstance(expr, ExprBlock):
            self.visit_block(expr)

        elif isinstance(expr, ExprOther):
            for child in expr.children:
                self.visit_node(child)

    def visit_node(self, node: Node) -> None:
        if isinstance(node, (StmtLocal, StmtExpr, StmtItem)):
            self.visit_stmt(node)
        elif isinstance(node, (ItemFn, ItemImpl, ItemTrait, ItemMod)):
            self.visit_item(node)
        else:
            self.visit_expr(node)

    # =========================================================================
    # Reporting
    # =========================================================================

    def _report(self, local: StmtLocal, construction: Construction) -> None:
        ctx = self.tracker.current
        name = local.name
        kind = construction.kind

        if kind == ConstructionKind.METHOD_CHAIN:
            message = (f"Method `{construction.constructor}` returns a shared handle - "
                       f"local `{name}` may cause state desync if captured in closure")
        else:
            message = (f"Local `{name}` created via `{construction.constructor}` in "
                       f"`{ctx.function_label}()` - if captured by closure, it will be "
                       f"disconnected from self")

        finding = Finding(
            rule_code=kind.rule.code,
            severity=kind.severity,
            message=message,
            file=self.filename,
        )
        self.findings.append(
            finding
            .at(local.location.line, local.location.column)
            .with_suggestion(f"Use `let {name}_clone = self.{name}.clone()` instead")
        )


def lint_source_ast(
    source_code: str,
    filename: str = "<unknown>",
    frontend=None,
    **options,
) -> Report:
    """
    Run the syntax-tree pass over one file.

    Args:
        source_code: Rust source text
        filename: Display path used in findings
        frontend: RustFrontend to reuse (a new one is created otherwise)
        **options: Forwarded to StateSyncVisitor

    Raises:
        RustParseError: if the file does not parse cleanly
    """
    if frontend is None:
        from statesync.frontends.rust_frontend import RustFrontend
        frontend = RustFrontend()

    source_file = frontend.parse(source_code, filename)
    visitor = StateSyncVisitor(filename, **options)
    findings = visitor.visit_file(source_file)

    return Report(
        findings=list(findings),
        files_analyzed=1,
        lines_analyzed=len(source_lines(source_code)),
    )
