"""
Language frontends for statesync.

Frontends use tree-sitter for parsing and lower the concrete syntax tree
into statesync.syntax.

Available frontends:
- RustFrontend: Rust source code
"""

from statesync.frontends.rust_frontend import (
    RustFrontend,
    TREE_SITTER_RUST_AVAILABLE,
    path_segments,
)

__all__ = [
    "RustFrontend",
    "TREE_SITTER_RUST_AVAILABLE",
    "path_segments",
]
