"""
Rules engine package.

Defines the rule model, the ordered rule store and the resolution engine
used to pick the quota that governs a request. Declaration order is
priority: the first rule whose pattern fully matches wins, and a rule
that an earlier rule already covers is rejected when it is added.

Modules of interest:
- patterns: Wildcard compilation and the Exact / Prefix / Wildcard specs.
- models: Rule, ResolvedRule, RuleDefinition and strict quota parsing.
- store: Append-only RuleStore with reachability checks.
- engine: RuleEngine, first-match resolution over a frozen store.
"""

from .engine import RuleEngine
from .models import ResolvedRule, Rule, RuleDefinition
from .patterns import Exact, Prefix, Wildcard, compile_pattern, parse_pattern_value
from .store import RuleStore

__all__ = [
    "RuleEngine",
    "RuleStore",
    "Rule",
    "RuleDefinition",
    "ResolvedRule",
    "Exact",
    "Prefix",
    "Wildcard",
    "compile_pattern",
    "parse_pattern_value",
]
