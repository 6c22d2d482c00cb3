"""
Rust frontend for statesync.

Parses Rust source with tree-sitter and lowers the concrete syntax tree
into statesync.syntax. It handles:
- Function items, trait signatures, impl/trait/mod containers
- Type aliases and return types (outermost constructor path)
- let bindings, expression statements, tail expressions
- Calls, method calls (including turbofish forms), closures
- Plain, unsafe, async and const blocks

Anything else is lowered to an opaque ExprOther/ItemOther that keeps its
children so nested closures and let bindings are still visited.
"""

from typing import List, Optional, Any

try:
    import tree_sitter_rust as tsr
    from tree_sitter import Language, Parser, Node as TSNode
    TREE_SITTER_RUST_AVAILABLE = True
except ImportError:
    TREE_SITTER_RUST_AVAILABLE = False
    TSNode = Any

from statesync.errors import RustParseError
from statesync.syntax import (
    Location, TypeRef, BlockKind,
    ExprPath, ExprField, ExprCall, ExprMethodCall, ExprClosure,
    ExprBlock, ExprOther, Expr,
    StmtLocal, StmtExpr, StmtItem, Stmt,
    ItemFn, ItemTypeAlias, ItemImpl, ItemTrait, ItemMod, ItemOther, Item,
    Node, SourceFile,
)


ITEM_TYPES = {
    "function_item", "function_signature_item", "type_item", "impl_item",
    "trait_item", "mod_item", "struct_item", "enum_item", "union_item",
    "const_item", "static_item", "use_declaration", "extern_crate_declaration",
    "foreign_mod_item", "macro_definition", "associated_type",
    "attribute_item", "inner_attribute_item",
}

SKIPPED_TYPES = {"line_comment", "block_comment", "attribute_item",
                 "inner_attribute_item", "empty_statement"}

BLOCK_KINDS = {
    "unsafe_block": BlockKind.UNSAFE,
    "async_block": BlockKind.ASYNC,
    "const_block": BlockKind.CONST,
}


def path_segments(text: str) -> List[str]:
    """
    Split a Rust path into segments, dropping generic arguments.

    `Wrapper::<i32>::new` -> ["Wrapper", "new"]
    `::std::rc::Rc<T>` -> ["std", "rc", "Rc"]
    """
    stripped = []
    depth = 0
    prev = ""
    for ch in text:
        if ch == "<":
            depth += 1
        elif ch == ">" and prev != "-" and depth > 0:
            depth -= 1
        elif depth == 0:
            stripped.append(ch)
        prev = ch
    return [seg.strip() for seg in "".join(stripped).split("::") if seg.strip()]


class RustFrontend:
    """
    Lowers Rust source code to statesync.syntax.

    Usage:
        frontend = RustFrontend()
        source_file = frontend.parse(source_code, "src/worker.rs")
    """

    def __init__(self, max_depth: int = 128):
        """
        Initialize the Rust frontend.

        Args:
            max_depth: Nesting depth beyond which subtrees are lowered
                as opaque nodes without children
        """
        if not TREE_SITTER_RUST_AVAILABLE:
            raise ImportError(
                "tree-sitter-rust is required. "
                "Install with: pip install tree-sitter tree-sitter-rust"
            )

        self.parser = Parser(Language(tsr.language()))
        self.max_depth = max_depth

        # State during lowering
        self._filename = "<unknown>"
        self._source = b""
        self._depth = 0

    def parse(self, source_code: str, filename: str = "<unknown>") -> SourceFile:
        """
        Parse and lower one file.

        Raises:
            RustParseError: if the grammar rejects any part of the file
        """
        self._filename = filename
        self._source = bytes(source_code, "utf8")
        self._depth = 0

        tree = self.parser.parse(self._source)
        root = tree.root_node
        if root.has_error:
            error_node = self._first_error(root)
            if error_node is not None:
                loc = self._get_location(error_node)
                raise RustParseError(filename, loc.line, loc.column)
            raise RustParseError(filename)

        return SourceFile(
            filename=filename,
            items=self._lower_items(root),
        )

    # =========================================================================
    # Items
    # =========================================================================

    def _lower_items(self, container: TSNode, in_impl: bool = False) -> List[Item]:
        items = []
        for child in container.named_children:
            if child.type in SKIPPED_TYPES:
                continue
            items.append(self._lower_item(child, in_impl))
        return items

    def _lower_item(self, node: TSNode, in_impl: bool = False) -> Item:
        if self._depth >= self.max_depth:
            return ItemOther(kind=node.type)

        self._depth += 1
        try:
            return self._lower_item_inner(node, in_impl)
        finally:
            self._depth -= 1

    def _lower_item_inner(self, node: TSNode, in_impl: bool) -> Item:
        if node.type in ("function_item", "function_signature_item"):
            return self._lower_function(node, in_impl)

        elif node.type == "type_item":
            name = node.child_by_field_name("name")
            return ItemTypeAlias(
                name=self._get_text(name),
                type=self._lower_type(node.child_by_field_name("type")),
                location=self._get_location(name or node),
            )

        elif node.type == "impl_item":
            body = node.child_by_field_name("body")
            return ItemImpl(
                self_type=self._get_text(node.child_by_field_name("type")),
                items=self._lower_items(body, in_impl=True) if body else [],
            )

        elif node.type == "trait_item":
            body = node.child_by_field_name("body")
            return ItemTrait(
                name=self._get_text(node.child_by_field_name("name")),
                items=self._lower_items(body, in_impl=True) if body else [],
            )

        elif node.type == "mod_item":
            body = node.child_by_field_name("body")
            return ItemMod(
                name=self._get_text(node.child_by_field_name("name")),
                items=self._lower_items(body) if body else [],
            )

        return ItemOther(kind=node.type)

    def _lower_function(self, node: TSNode, in_impl: bool) -> ItemFn:
        name = node.child_by_field_name("name")
        return_type = node.child_by_field_name("return_type")
        body = node.child_by_field_name("body")
        return ItemFn(
            name=self._get_text(name),
            return_type=self._lower_type(return_type) if return_type else None,
            body=self._lower_block(body) if body else None,
            is_method=in_impl,
            location=self._get_location(name or node),
        )

    # =========================================================================
    # Types
    # =========================================================================

    def _lower_type(self, node: Optional[TSNode]) -> TypeRef:
        if node is None:
            return TypeRef()

        text = self._get_text(node)
        if self._depth >= self.max_depth:
            return TypeRef(text=text)

        self._depth += 1
        try:
            return self._lower_type_inner(node, text)
        finally:
            self._depth -= 1

    def _lower_type_inner(self, node: TSNode, text: str) -> TypeRef:
        if node.type in ("type_identifier", "scoped_type_identifier", "primitive_type"):
            return TypeRef(segments=path_segments(text), text=text)

        if node.type == "generic_type":
            base = node.child_by_field_name("type")
            args = node.child_by_field_name("type_arguments")
            arguments = []
            if args is not None:
                for arg in args.named_children:
                    if arg.type not in SKIPPED_TYPES:
                        arguments.append(self._lower_type(arg))
            return TypeRef(
                segments=path_segments(self._get_text(base)),
                arguments=arguments,
                text=text,
            )

        return TypeRef(text=text)

    # =========================================================================
    # Statements
    # =========================================================================

    def _lower_block(self, node: TSNode, kind: BlockKind = BlockKind.PLAIN) -> ExprBlock:
        if node.type in BLOCK_KINDS:
            inner = next((c for c in node.named_children if c.type == "block"), None)
            kind = BLOCK_KINDS[node.type]
            if inner is None:
                return ExprBlock(kind=kind)
            node = inner

        stmts = []
        for child in node.named_children:
            if child.type in SKIPPED_TYPES or child.type == "label":
                continue
            stmts.append(self._lower_stmt(child))
        return ExprBlock(stmts=stmts, kind=kind)

    def _lower_stmt(self, node: TSNode) -> Stmt:
        if node.type == "let_declaration":
            return self._lower_let(node)

        if node.type == "expression_statement":
            inner = next((c for c in node.named_children
                          if c.type not in SKIPPED_TYPES), None)
            semi = any(c.type == ";" for c in node.children)
            if inner is None:
                return StmtExpr(expr=ExprOther(kind="empty"), semi=semi)
            return StmtExpr(expr=self._lower_expr(inner), semi=semi)

        if node.type in ITEM_TYPES:
            return StmtItem(item=self._lower_item(node))

        # Tail expression of a block
        return StmtExpr(expr=self._lower_expr(node), semi=False)

    def _lower_let(self, node: TSNode) -> StmtLocal:
        pattern = node.child_by_field_name("pattern")
        type_node = node.child_by_field_name("type")
        value = node.child_by_field_name("value")
        alternative = node.child_by_field_name("alternative")

        else_block = self._lower_expr(alternative) if alternative else None
        return StmtLocal(
            name=self._binding_name(pattern),
            init=self._lower_expr(value) if value else None,
            type=self._lower_type(type_node) if type_node else None,
            else_block=else_block if isinstance(else_block, ExprBlock) else None,
            location=self._get_location(node),
        )

    def _binding_name(self, pattern: Optional[TSNode]) -> Optional[str]:
        """Name bound by a simple `name` / `mut name` pattern"""
        if pattern is None:
            return None
        if pattern.type == "identifier":
            return self._get_text(pattern)
        if pattern.type in ("mut_pattern", "ref_pattern"):
            ident = next((c for c in pattern.named_children if c.type == "identifier"), None)
            return self._get_text(ident) if ident else None
        return None

    # =========================================================================
    # Expressions
    # =========================================================================

    def _lower_expr(self, node: TSNode) -> Expr:
        if self._depth >= self.max_depth:
            return ExprOther(kind=node.type)

        self._depth += 1
        try:
            return self._lower_expr_inner(node)
        finally:
            self._depth -= 1

    def _lower_expr_inner(self, node: TSNode) -> Expr:
        t = node.type

        if t in ("identifier", "self", "crate", "super", "metavariable"):
            return ExprPath(segments=[self._get_text(node)])

        if t in ("scoped_identifier", "scoped_type_identifier", "type_identifier"):
            return ExprPath(segments=path_segments(self._get_text(node)))

        if t == "generic_function":
            # Turbofish on a function or method: `Rc::new::<T>` / `x.to_rc::<T>`
            return self._lower_expr(node.child_by_field_name("function"))

        if t == "parenthesized_expression":
            inner = next((c for c in node.named_children
                          if c.type not in SKIPPED_TYPES), None)
            if inner is not None:
                return self._lower_expr(inner)
            return ExprOther(kind=t)

        if t == "field_expression":
            return ExprField(
                base=self._lower_expr(node.child_by_field_name("value")),
                name=self._get_text(node.child_by_field_name("field")),
            )

        if t == "call_expression":
            func = self._lower_expr(node.child_by_field_name("function"))
            args = self._lower_arguments(node.child_by_field_name("arguments"))
            if isinstance(func, ExprField):
                return ExprMethodCall(receiver=func.base, method=func.name, args=args)
            return ExprCall(func=func, args=args)

        if t == "closure_expression":
            body = node.child_by_field_name("body")
            return ExprClosure(
                body=self._lower_expr(body) if body else None,
                is_move=any(c.type == "move" for c in node.children),
            )

        if t == "block" or t in BLOCK_KINDS:
            return self._lower_block(node)

        if t == "macro_invocation":
            # Token trees are not lowered
            return ExprOther(kind=t)

        return ExprOther(kind=t, children=self._lower_children(node))

    def _lower_arguments(self, node: Optional[TSNode]) -> List[Expr]:
        if node is None:
            return []
        return [self._lower_expr(c) for c in node.named_children
                if c.type not in SKIPPED_TYPES]

    def _lower_children(self, node: TSNode) -> List[Node]:
        children = []
        for child in node.named_children:
            if child.type in SKIPPED_TYPES:
                continue
            if child.type == "let_declaration":
                children.append(self._lower_let(child))
            elif child.type == "let_condition":
                # `if let PAT = value`: only the scrutinee can hold closures
                value = child.child_by_field_name("value")
                if value is not None:
                    children.append(self._lower_expr(value))
            elif child.type in ITEM_TYPES:
                children.append(self._lower_item(child))
            else:
                children.append(self._lower_expr(child))
        return children

    # =========================================================================
    # Helpers
    # =========================================================================

    def _first_error(self, node: TSNode) -> Optional[TSNode]:
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type == "ERROR" or current.is_missing:
                return current
            if current.has_error:
                stack.extend(reversed(current.children))
        return None

    def _get_text(self, node: Optional[TSNode]) -> str:
        if node is None:
            return ""
        return self._source[node.start_byte:node.end_byte].decode("utf8", errors="replace")

    def _get_location(self, node: TSNode) -> Location:
        if hasattr(node, "start_point"):
            return Location(line=node.start_point[0] + 1, column=node.start_point[1] + 1)
        return Location()
