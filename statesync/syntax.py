"""
Lowered Rust syntax for statesync.

The tree-sitter concrete syntax tree is lowered into this small, closed
set of dataclasses before analysis. Only the shapes the analyzers care
about get their own class:
- Items: functions, type aliases, impl/trait/mod containers
- Statements: let bindings, expression statements, nested items
- Expressions: paths, field access, calls, method calls, closures, blocks

Everything else is kept as ExprOther / ItemOther so traversal can still
reach closures and let bindings nested inside it.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union
from enum import Enum


# =============================================================================
# Locations and types
# =============================================================================

@dataclass(frozen=True)
class Location:
    """1-indexed source position"""
    line: int = 1
    column: int = 1

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass
class TypeRef:
    """
    A type expression reduced to its outermost constructor path.

    `std::rc::Rc<RefCell<State>>` becomes segments ["std", "rc", "Rc"]
    with one argument. Types that are not paths (references, tuples,
    slices) have no segments.
    """
    segments: List[str] = field(default_factory=list)
    arguments: List['TypeRef'] = field(default_factory=list)
    text: str = ""

    @property
    def name(self) -> str:
        """Outermost constructor name, without module path or generics"""
        return self.segments[-1] if self.segments else ""


# =============================================================================
# Expressions
# =============================================================================

class BlockKind(Enum):
    PLAIN = "plain"
    UNSAFE = "unsafe"
    ASYNC = "async"
    CONST = "const"


@dataclass
class ExprPath:
    """`state`, `self`, `Rc::new`, `Wrapper::<i32>::new` (generics dropped)"""
    segments: List[str]

    @property
    def first(self) -> str:
        return self.segments[0] if self.segments else ""

    @property
    def last(self) -> str:
        return self.segments[-1] if self.segments else ""

    def __str__(self) -> str:
        return "::".join(self.segments)


@dataclass
class ExprField:
    """`base.field`"""
    base: 'Expr'
    name: str


@dataclass
class ExprCall:
    """`func(args)` where func is not a field access"""
    func: 'Expr'
    args: List['Expr'] = field(default_factory=list)


@dataclass
class ExprMethodCall:
    """`receiver.method(args)`, turbofish on the method dropped"""
    receiver: 'Expr'
    method: str
    args: List['Expr'] = field(default_factory=list)


@dataclass
class ExprClosure:
    """`|args| body` or `move |args| body`"""
    body: Optional['Expr']
    is_move: bool = False


@dataclass
class ExprBlock:
    """`{ ... }`, `unsafe { ... }`, `async { ... }`, `const { ... }`"""
    stmts: List['Stmt'] = field(default_factory=list)
    kind: BlockKind = BlockKind.PLAIN


@dataclass
class ExprOther:
    """Any other expression, keeping its lowered children for traversal"""
    kind: str
    children: List['Node'] = field(default_factory=list)


Expr = Union[ExprPath, ExprField, ExprCall, ExprMethodCall, ExprClosure,
             ExprBlock, ExprOther]


# =============================================================================
# Statements
# =============================================================================

@dataclass
class StmtLocal:
    """
    `let [mut] name[: T] [= init] [else { ... }];`

    `name` is None for destructuring patterns.
    """
    name: Optional[str]
    init: Optional[Expr] = None
    type: Optional[TypeRef] = None
    else_block: Optional[ExprBlock] = None
    location: Location = field(default_factory=Location)


@dataclass
class StmtExpr:
    expr: Expr
    semi: bool = False


@dataclass
class StmtItem:
    item: 'Item'


Stmt = Union[StmtLocal, StmtExpr, StmtItem]


# =============================================================================
# Items
# =============================================================================

@dataclass
class ItemFn:
    """
    Function or method. `body` is None for trait signatures.

    `is_method` is set for functions declared inside impl or trait blocks.
    """
    name: str
    return_type: Optional[TypeRef] = None
    body: Optional[ExprBlock] = None
    is_method: bool = False
    location: Location = field(default_factory=Location)


@dataclass
class ItemTypeAlias:
    name: str
    type: TypeRef
    location: Location = field(default_factory=Location)


@dataclass
class ItemImpl:
    self_type: str
    items: List['Item'] = field(default_factory=list)


@dataclass
class ItemTrait:
    name: str
    items: List['Item'] = field(default_factory=list)


@dataclass
class ItemMod:
    name: str
    items: List['Item'] = field(default_factory=list)


@dataclass
class ItemOther:
    kind: str


Item = Union[ItemFn, ItemTypeAlias, ItemImpl, ItemTrait, ItemMod, ItemOther]

Node = Union[Expr, Stmt, Item]


@dataclass
class SourceFile:
    """One lowered Rust file"""
    filename: str
    items: List[Item] = field(default_factory=list)


def source_lines(source: str) -> List[str]:
    """
    Split source text into lines.

    A trailing newline does not start an extra line and a trailing "\\r"
    is dropped, so "" has zero lines and "fn a() {}\\n" has one.
    """
    lines = source.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]
