"""
Rule catalogue for state synchronization linting.

Rule codes are stable identifiers; downstream tooling filters and
allow-lists on them, so they must never be renumbered.

| Rule   | Description                                          | Severity |
|--------|------------------------------------------------------|----------|
| SS-000 | Source file could not be read                        | Error    |
| SS-001 | Local handle constructed in a closure factory        | Error    |
| SS-002 | Both self.field and local handle referenced          | Warning  |
| SS-005 | Missing self.*.clone() before closure                | Warning  |
| SS-006 | Type alias wraps handle / alias-constructed local    | Info/Warning |
| SS-007 | Helper returns handle / helper-constructed local     | Info/Warning |
| SS-008 | Method chain produces a handle                       | Warning  |
| SS-009 | Handle relaundered from a raw pointer                | Error    |
"""

from enum import Enum
from typing import Dict

from statesync.report import Severity


class Rule(Enum):
    """Rule identifiers"""
    READ_FAILURE = "SS-000"
    DIRECT_CONSTRUCTION = "SS-001"
    CONFLICTING_REFERENCE = "SS-002"
    MISSING_SELF_CLONE = "SS-005"
    ALIAS_CONSTRUCTION = "SS-006"
    HELPER_CONSTRUCTION = "SS-007"
    METHOD_CHAIN = "SS-008"
    UNSAFE_RELAUNDER = "SS-009"

    @property
    def code(self) -> str:
        return self.value


RULE_DESCRIPTIONS: Dict[Rule, str] = {
    Rule.READ_FAILURE: "Source file could not be read",
    Rule.DIRECT_CONSTRUCTION: "Local Rc::new() in function that creates closures",
    Rule.CONFLICTING_REFERENCE: "Both self.field and a local handle are referenced",
    Rule.MISSING_SELF_CLONE: "Missing self.*.clone() before closure",
    Rule.ALIAS_CONSTRUCTION: "Type alias wrapping Rc used with a constructor",
    Rule.HELPER_CONSTRUCTION: "Function returning Rc used in closure context",
    Rule.METHOD_CHAIN: "Method chain producing a new Rc",
    Rule.UNSAFE_RELAUNDER: "Rc reconstructed from a raw pointer",
}

# Severity of usage-time findings. Declaration-time SS-006/SS-007
# findings are always Info.
RULE_SEVERITY: Dict[Rule, Severity] = {
    Rule.READ_FAILURE: Severity.ERROR,
    Rule.DIRECT_CONSTRUCTION: Severity.ERROR,
    Rule.CONFLICTING_REFERENCE: Severity.WARNING,
    Rule.MISSING_SELF_CLONE: Severity.WARNING,
    Rule.ALIAS_CONSTRUCTION: Severity.WARNING,
    Rule.HELPER_CONSTRUCTION: Severity.WARNING,
    Rule.METHOD_CHAIN: Severity.WARNING,
    Rule.UNSAFE_RELAUNDER: Severity.ERROR,
}


def rule_for_code(code: str) -> Rule:
    """Look up a rule by its code ("SS-001")"""
    for rule in Rule:
        if rule.value == code:
            return rule
    raise ValueError(f"Unknown rule code: {code}")


# =============================================================================
# Pattern vocabulary
# =============================================================================

# Shared-ownership handle types and their weak counterpart
HANDLE_TYPES = ("Rc", "Arc")
WEAK_TYPES = ("Weak",)

# Associated functions that produce a fresh handle
CONSTRUCTOR_METHODS = {"new", "default", "from", "clone"}

# Raw-pointer reconstruction
RELAUNDER_METHODS = {"from_raw", "increment_strong_count"}

# Methods assumed to return a new handle
METHOD_CHAIN_NAMES = {"to_rc", "into_rc", "as_rc", "wrap_rc"}

# Function-name fragments of entry points that usually hand off closures
CLOSURE_FACTORY_NAMES = (
    "spawn", "start", "on_message", "on_click", "on_event",
    "set_callback", "register", "subscribe", "listen", "wrap",
)

# Text tokens that introduce a closure
CLOSURE_MARKERS = ("Closure::wrap", "Closure::once", "move ||", "move |")

# Path head of closure-construction calls (`Closure::wrap`, `Closure::once`)
CLOSURE_TYPE = "Closure"


def is_closure_factory_name(name: str) -> bool:
    """Name heuristic for functions that create closures"""
    if not name:
        return False
    if name.startswith("on_"):
        return True
    return any(fragment in name for fragment in CLOSURE_FACTORY_NAMES)
