"""
Tests for the per-file alias and helper symbol tables.
"""

import pytest

# Check if tree-sitter is available
try:
    import tree_sitter_rust
    TREE_SITTER_AVAILABLE = True
except ImportError:
    TREE_SITTER_AVAILABLE = False


pytestmark = pytest.mark.skipif(
    not TREE_SITTER_AVAILABLE,
    reason="tree-sitter-rust not installed"
)


from statesync.analyzers.symbols import SymbolCollector
from statesync.report import Severity


def collect(code, handle_types=("Rc", "Arc")):
    from statesync.frontends.rust_frontend import RustFrontend

    source_file = RustFrontend().parse(code, "lib.rs")
    collector = SymbolCollector("lib.rs", handle_types)
    table = collector.collect(source_file.items)
    return table, collector.findings


class TestAliases:
    """Test type alias discovery"""

    def test_handle_alias(self):
        """Alias wrapping Rc is recorded with an Info finding"""
        table, findings = collect("type StatePtr = Rc<RefCell<State>>;\n")
        assert table.aliases == {"StatePtr"}
        assert len(findings) == 1
        finding = findings[0]
        assert finding.rule_code == "SS-006"
        assert finding.severity == Severity.INFO
        assert finding.line == 1
        assert finding.column == 1
        assert "StatePtr" in finding.message

    def test_generic_alias(self):
        table, _ = collect("pub type Wrapper<T> = Arc<Mutex<T>>;\n")
        assert table.aliases == {"Wrapper"}

    def test_qualified_handle(self):
        table, _ = collect("type Shared = std::sync::Arc<u8>;\n")
        assert table.aliases == {"Shared"}

    def test_non_handle_alias_ignored(self):
        table, findings = collect("type MyType = Vec<u32>;\n")
        assert table.aliases == set()
        assert findings == []

    def test_only_outermost_constructor(self):
        """`RefCell<Rc<T>>` is not itself a handle"""
        table, _ = collect("type Inner = RefCell<Rc<u8>>;\n")
        assert table.aliases == set()

    def test_custom_handle_type(self):
        table, _ = collect("type Ptr = SharedPtr<u8>;\n", handle_types=("SharedPtr",))
        assert table.aliases == {"Ptr"}


class TestHelpers:
    """Test helper-function discovery"""

    def test_free_function(self):
        code = """
fn make_state() -> Rc<RefCell<u8>> {
    Rc::new(RefCell::new(0))
}
"""
        table, findings = collect(code)
        assert table.helpers == {"make_state"}
        assert findings[0].rule_code == "SS-007"
        assert findings[0].severity == Severity.INFO
        assert findings[0].line == 2
        assert findings[0].message.startswith("Function `make_state` returns Rc")

    def test_method_in_impl(self):
        code = """
impl Worker {
    fn shared(&self) -> Arc<Mutex<u8>> {
        self.inner.clone()
    }
}
"""
        table, findings = collect(code)
        assert table.helpers == {"shared"}
        assert findings[0].message.startswith("Method `shared` returns Arc")

    def test_trait_signature_and_mod(self):
        code = """
trait Factory {
    fn make(&self) -> Rc<u8>;
}

mod inner {
    pub fn build() -> std::rc::Rc<u8> { std::rc::Rc::new(1) }
}
"""
        table, findings = collect(code)
        assert table.helpers == {"make", "build"}
        assert len(findings) == 2

    def test_nested_function_item(self):
        code = """
fn outer() {
    fn inner() -> Rc<u8> { Rc::new(0) }
}
"""
        table, _ = collect(code)
        assert table.helpers == {"inner"}

    def test_non_handle_return_ignored(self):
        table, findings = collect("fn count() -> usize { 0 }\n")
        assert table.helpers == set()
        assert findings == []

    def test_bodies_not_inspected(self):
        """A function returning a handle without declaring it is not a helper"""
        table, _ = collect("fn sneaky() -> Box<u8> { let x = Rc::new(0); Box::new(0) }\n")
        assert table.helpers == set()
