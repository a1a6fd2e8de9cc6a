"""Rate-limit policy resolver."""

from .app.loader import load_engine, load_from_document, load_from_file
from .app.rules import ResolvedRule, Rule, RuleDefinition, RuleEngine, RuleStore, compile_pattern

__all__ = [
    "RuleStore",
    "RuleEngine",
    "Rule",
    "RuleDefinition",
    "ResolvedRule",
    "compile_pattern",
    "load_from_document",
    "load_from_file",
    "load_engine",
]
