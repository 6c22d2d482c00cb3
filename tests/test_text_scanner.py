"""
Tests for the line-oriented fallback pass.

The text pass needs no parser, so these run everywhere.
"""

import pytest

from statesync.analyzers.text_scanner import (
    TextScanner, lint_source_text, detect_function_start,
    line_creates_closure, let_binding,
)
from statesync.report import Severity


BUGGY_CODE = """
impl Worker {
    fn spawn(&mut self) {
        let state = Rc::new(RefCell::new(0));
        let callback = move || {
            *state.borrow_mut() += 1;
        };
        run(callback);
    }
}
"""

CORRECT_CODE = """
impl Worker {
    fn spawn(&mut self) {
        let state_clone = self.state.clone();
        let callback = move || {
            *state_clone.borrow_mut() += 1;
        };
        run(callback);
    }
}
"""


def scan(code, **kwargs):
    return lint_source_text(code, "src/worker.rs", **kwargs)


def located(report):
    return [(f.rule_code, f.line) for f in report.findings]


class TestLineHelpers:
    """Tests for the per-line recognizers"""

    @pytest.mark.parametrize("line,name", [
        ("fn spawn() {", "spawn"),
        ("    pub fn start(&self) {", "start"),
        ("pub(crate) fn on_message(msg: Msg) {", "on_message"),
        ("async fn listen() {", "listen"),
        ("pub unsafe fn raw() {", "raw"),
        ("const fn size() -> usize {", "size"),
        ('extern "C" fn callback() {', "callback"),
    ])
    def test_function_start(self, line, name):
        assert detect_function_start(line) == name

    @pytest.mark.parametrize("line", [
        "let f = 1;",
        "// fn commented_out() {",
        "self.spawn();",
    ])
    def test_not_function_start(self, line):
        assert detect_function_start(line) is None

    def test_closure_markers(self):
        assert line_creates_closure("let cb = Closure::wrap(Box::new(f));")
        assert line_creates_closure("    run(move || state.get());")
        assert line_creates_closure("items.map(move |x| x + 1)")
        assert not line_creates_closure("items.map(|x| x + 1)")
        assert not line_creates_closure("let x = 1;")

    def test_let_binding(self):
        assert let_binding("    let mut state = Rc::new(0);") == ("state", 13)
        assert let_binding("let x = 1;") == ("x", 5)
        assert let_binding("state = 1;") is None


class TestConstructionDetection:
    """SS-001, SS-006 and SS-007 from text"""

    def test_buggy_code(self):
        """Local Rc::new plus a direct borrow inside the closure"""
        report = scan(BUGGY_CODE)
        assert located(report) == [("SS-001", 4), ("SS-005", 6)]

        direct = report.findings[0]
        assert direct.severity == Severity.ERROR
        assert direct.column == 13
        assert "`state`" in direct.message

        missing = report.findings[1]
        assert missing.severity == Severity.WARNING
        assert missing.message == "Using `state` directly - may be disconnected from self"

    def test_correct_code(self):
        """The self-clone idiom produces nothing"""
        report = scan(CORRECT_CODE)
        assert report.findings == []

    def test_no_closure_no_finding(self):
        code = """
fn add(&mut self) {
    let state = Rc::new(0);
    state.borrow_mut();
}
"""
        assert scan(code).findings == []

    def test_closure_later_in_function(self):
        """The closure pre-pass covers constructions before the closure"""
        code = """
fn compute() {
    let state = Rc::new(0);
    let cb = move || {};
}
"""
        assert located(scan(code)) == [("SS-001", 3)]

    def test_alias_new(self):
        code = """
type StatePtr<T> = Rc<RefCell<T>>;
fn spawn_worker() {
    let state = StatePtr::<i32>::new(RefCell::new(0));
}
"""
        report = scan(code)
        assert [(f.rule_code, f.line, f.severity) for f in report.findings] == [
            ("SS-006", 2, Severity.INFO),
            ("SS-006", 4, Severity.WARNING),
        ]
        assert "`StatePtr::new()`" in report.findings[1].message

    def test_helper_call(self):
        code = """
fn make_state() -> Rc<RefCell<u32>> {
    Rc::new(RefCell::new(0))
}

fn spawn() {
    let state = make_state();
}
"""
        report = scan(code)
        assert [(f.rule_code, f.line, f.severity) for f in report.findings] == [
            ("SS-007", 2, Severity.INFO),
            ("SS-007", 7, Severity.WARNING),
        ]

    def test_custom_handle_type(self):
        code = """
fn spawn() {
    let state = Gc::new(0);
}
"""
        assert scan(code).findings == []
        assert located(scan(code, handle_types=("Gc",))) == [("SS-001", 3)]


class TestClosureChecks:
    """SS-002 and SS-005"""

    def test_conflicting_reference(self):
        code = """
fn spawn(&mut self) {
    let state = Rc::new(0);
    let cb = move || {
        self.state.set(state.get());
    };
}
"""
        report = scan(code)
        assert located(report) == [("SS-001", 3), ("SS-002", 4)]
        assert report.findings[1].severity == Severity.WARNING
        assert "`self.state`" in report.findings[1].message

    def test_closure_captures_local(self):
        code = """
fn spawn() {
    let state = Rc::new(0);
    run(move || state.get());
}
"""
        report = scan(code)
        assert located(report) == [("SS-001", 3), ("SS-005", 4)]
        assert "Closure may capture local `state`" in report.findings[1].message

    def test_untracked_borrow_in_closure_function(self):
        """A borrow on a name not cloned from self"""
        code = """
fn process(&self) {
    let closure = move || {
        state_ptr.borrow_mut().update();
    };
}
"""
        report = scan(code)
        assert located(report) == [("SS-005", 4)]
        assert "`state_ptr`" in report.findings[0].message


class TestScannerState:
    """Brace tracking, counters and reuse"""

    def test_empty_source(self):
        report = scan("")
        assert report.findings == []
        assert report.files_analyzed == 1
        assert report.lines_analyzed == 0

    def test_leading_closing_braces(self):
        """Unbalanced closers never drive the depth negative"""
        code = "}}\nfn spawn() {\n    let state = Rc::new(0);\n}\n"
        assert located(scan(code)) == [("SS-001", 3)]

    def test_multiple_functions(self):
        code = """
fn compute() {
    let a = Rc::new(0);
}

fn spawn() {
    let b = Rc::new(1);
}
"""
        assert located(scan(code)) == [("SS-001", 7)]

    def test_scanner_reuse(self):
        """scan() resets state between files"""
        scanner = TextScanner("a.rs")
        first = scanner.scan(BUGGY_CODE)
        second = scanner.scan(BUGGY_CODE)
        assert first.findings == second.findings
