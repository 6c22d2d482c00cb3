"""
Tests for the tree-sitter Rust frontend.

Checks that Rust source lowers into the statesync.syntax shapes the
analyzers rely on.
"""

import pytest

# Check if tree-sitter is available
try:
    import tree_sitter_rust
    TREE_SITTER_AVAILABLE = True
except ImportError:
    TREE_SITTER_AVAILABLE = False


# Skip all tests if tree-sitter not available
pytestmark = pytest.mark.skipif(
    not TREE_SITTER_AVAILABLE,
    reason="tree-sitter-rust not installed"
)


from statesync.errors import RustParseError
from statesync.syntax import (
    BlockKind, ExprBlock, ExprCall, ExprClosure, ExprField, ExprMethodCall,
    ExprPath, ItemFn, ItemImpl, ItemMod, ItemOther, ItemTrait, ItemTypeAlias, StmtExpr,
    StmtLocal,
)


@pytest.fixture
def frontend():
    from statesync.frontends.rust_frontend import RustFrontend
    return RustFrontend()


def first_fn(source_file):
    for item in source_file.items:
        if isinstance(item, ItemFn):
            return item
    raise AssertionError("no function item")


def first_let(frontend, body):
    source = "fn f() {\n    " + body + "\n}\n"
    fn = first_fn(frontend.parse(source, "test.rs"))
    return next(s for s in fn.body.stmts if isinstance(s, StmtLocal))


class TestItems:
    """Test item lowering"""

    def test_function(self, frontend):
        """Free function with a body"""
        fn = first_fn(frontend.parse("fn spawn() {}\n", "test.rs"))
        assert fn.name == "spawn"
        assert fn.body is not None
        assert not fn.is_method
        assert fn.location.line == 1

    def test_impl_methods(self, frontend):
        """Functions in impl blocks are methods"""
        code = """
impl Worker {
    pub fn spawn(&mut self) {}
    fn stop(&self) {}
}
"""
        impl = frontend.parse(code, "test.rs").items[0]
        assert isinstance(impl, ItemImpl)
        assert impl.self_type == "Worker"
        assert [fn.name for fn in impl.items] == ["spawn", "stop"]
        assert all(fn.is_method for fn in impl.items)
        assert impl.items[0].location.line == 3

    def test_trait_signature(self, frontend):
        """Trait signatures have no body"""
        code = """
trait Factory {
    fn make(&self) -> Rc<u8>;
}
"""
        trait = frontend.parse(code, "test.rs").items[0]
        assert isinstance(trait, ItemTrait)
        sig = trait.items[0]
        assert sig.name == "make"
        assert sig.body is None
        assert sig.return_type.name == "Rc"

    def test_mod(self, frontend):
        code = "mod inner {\n    fn helper() {}\n}\n"
        module = frontend.parse(code, "test.rs").items[0]
        assert isinstance(module, ItemMod)
        assert module.name == "inner"
        assert module.items[0].name == "helper"

    def test_type_alias(self, frontend):
        """Alias lowers to its outermost constructor"""
        code = "type StatePtr<T> = Rc<RefCell<T>>;\n"
        alias = frontend.parse(code, "test.rs").items[0]
        assert isinstance(alias, ItemTypeAlias)
        assert alias.name == "StatePtr"
        assert alias.type.name == "Rc"
        assert alias.type.arguments[0].name == "RefCell"

    def test_qualified_return_type(self, frontend):
        fn = first_fn(frontend.parse(
            "fn make() -> std::rc::Rc<u8> { std::rc::Rc::new(0) }\n", "test.rs"))
        assert fn.return_type.segments == ["std", "rc", "Rc"]
        assert fn.return_type.name == "Rc"

    def test_reference_return_type_has_no_constructor(self, frontend):
        fn = first_fn(frontend.parse("fn get(x: &u8) -> &u8 { x }\n", "test.rs"))
        assert fn.return_type.name == ""

    def test_comments_skipped(self, frontend):
        code = "// leading\n/* block */\nfn a() {}\n"
        items = frontend.parse(code, "test.rs").items
        assert len(items) == 1


class TestStatements:
    """Test let bindings and expressions"""

    def test_let_direct_call(self, frontend):
        local = first_let(frontend, "let state = Rc::new(RefCell::new(0));")
        assert local.name == "state"
        assert isinstance(local.init, ExprCall)
        assert local.init.func.segments == ["Rc", "new"]
        assert local.location.line == 2
        assert local.location.column == 5

    def test_let_mut_and_type(self, frontend):
        local = first_let(frontend, "let mut state: Rc<u8> = Rc::new(0);")
        assert local.name == "state"
        assert local.type.name == "Rc"

    def test_destructuring_has_no_name(self, frontend):
        local = first_let(frontend, "let (a, b) = (1, 2);")
        assert local.name is None

    def test_turbofish_path(self, frontend):
        local = first_let(frontend, "let s = Wrapper::<i32>::new(0);")
        assert local.init.func.segments == ["Wrapper", "new"]

    def test_method_call(self, frontend):
        local = first_let(frontend, "let s = value.to_rc();")
        assert isinstance(local.init, ExprMethodCall)
        assert local.init.method == "to_rc"
        assert local.init.receiver.segments == ["value"]

    def test_turbofish_method_call(self, frontend):
        local = first_let(frontend, "let s = value.to_rc::<u8>();")
        assert isinstance(local.init, ExprMethodCall)
        assert local.init.method == "to_rc"

    def test_self_field_clone(self, frontend):
        local = first_let(frontend, "let s = self.state.clone();")
        assert isinstance(local.init, ExprMethodCall)
        assert local.init.method == "clone"
        receiver = local.init.receiver
        assert isinstance(receiver, ExprField)
        assert receiver.name == "state"
        assert isinstance(receiver.base, ExprPath)
        assert receiver.base.segments == ["self"]

    def test_unsafe_block(self, frontend):
        local = first_let(frontend, "let s = unsafe { Rc::from_raw(p) };")
        assert isinstance(local.init, ExprBlock)
        assert local.init.kind == BlockKind.UNSAFE
        tail = local.init.stmts[-1]
        assert isinstance(tail, StmtExpr)
        assert tail.expr.func.segments == ["Rc", "from_raw"]

    def test_move_closure(self, frontend):
        local = first_let(frontend, "let c = move || { state.borrow_mut(); };")
        assert isinstance(local.init, ExprClosure)
        assert local.init.is_move
        assert isinstance(local.init.body, ExprBlock)

    def test_plain_closure(self, frontend):
        local = first_let(frontend, "let c = |x: u8| x + 1;")
        assert isinstance(local.init, ExprClosure)
        assert not local.init.is_move

    def test_expression_statement_semicolon(self, frontend):
        fn = first_fn(frontend.parse("fn f() {\n    run();\n    done()\n}\n", "test.rs"))
        first, last = fn.body.stmts
        assert isinstance(first, StmtExpr) and first.semi
        assert isinstance(last, StmtExpr) and not last.semi


class TestParseErrors:
    """Test rejection of malformed source"""

    def test_syntax_error_raises(self, frontend):
        with pytest.raises(RustParseError) as exc_info:
            frontend.parse("fn broken( {\n", "broken.rs")
        assert exc_info.value.filename == "broken.rs"
        assert "broken.rs" in str(exc_info.value)

    def test_empty_source(self, frontend):
        assert frontend.parse("", "empty.rs").items == []

    def test_deep_nesting_bounded(self):
        """Nesting beyond max_depth lowers to opaque nodes instead of failing"""
        from statesync.frontends.rust_frontend import RustFrontend

        expr = "x"
        for _ in range(60):
            expr = f"({expr} + 1)"
        source = f"fn f() {{\n    let y = {expr};\n}}\n"

        fn = first_fn(RustFrontend(max_depth=8).parse(source, "deep.rs"))
        assert fn.body.stmts[0].name == "y"

    def test_deep_generic_type(self, frontend):
        """Deeply nested generic arguments keep the outer constructor"""
        source = "type T = Rc<" + "Vec<" * 1200 + "u8" + ">" * 1201 + ";\n"
        alias = frontend.parse(source, "deep.rs").items[0]
        assert isinstance(alias, ItemTypeAlias)
        assert alias.type.name == "Rc"

    def test_deep_mod_nesting(self, frontend):
        source = "mod m { " * 600 + "fn f() {}" + " }" * 600 + "\n"
        item = frontend.parse(source, "deep.rs").items[0]
        assert isinstance(item, ItemMod)

    def test_mod_nesting_bounded(self):
        """Items past max_depth are lowered as opaque items"""
        from statesync.frontends.rust_frontend import RustFrontend

        source = "mod m { " * 20 + "fn f() {}" + " }" * 20 + "\n"
        item = RustFrontend(max_depth=8).parse(source, "deep.rs").items[0]
        levels = 0
        while isinstance(item, ItemMod):
            levels += 1
            item = item.items[0]
        assert levels == 8
        assert isinstance(item, ItemOther)
        assert item.kind == "mod_item"
