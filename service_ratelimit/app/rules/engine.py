"""
Rule resolution engine for the rate-limit policy resolver.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from shared.errors import NoMatchingRuleError
from shared.logging import get_logger
from shared.metrics import PolicyMetrics
from .models import ResolvedRule, Rule
from .store import RuleStore


class RuleEngine:
    """First-match-wins resolver over a frozen rule store.

    Creating an engine freezes the store, so resolve() only ever reads an
    immutable snapshot and is safe to call from many threads at once. To
    reconfigure, build a new store and swap in a new engine.
    """

    def __init__(self, store: RuleStore, metrics: Optional[PolicyMetrics] = None):
        self.store = store.freeze()
        self.metrics = metrics if metrics is not None else store.metrics
        self.logger = get_logger("ratelimit.rule_engine").bind(store=store.name)
        self._rules: Tuple[Rule, ...] = store.rules

    def find_rule(self, attributes: Mapping[str, Any]) -> Optional[Rule]:
        """Return the first rule matching attributes, or None."""
        for rule in self._rules:
            if rule.matches(attributes):
                return rule
        return None

    def resolve(self, attributes: Mapping[str, Any]) -> ResolvedRule:
        """Resolve request attributes to the quota of the first matching rule."""
        rule = self.find_rule(attributes)

        if self.metrics:
            self.metrics.record_resolution(self.store.name, rule.index if rule else None)

        if rule is None:
            self.logger.info("No matching rule", attributes=dict(attributes))
            raise NoMatchingRuleError(dict(attributes), self.store.name)

        self.logger.debug(
            "Rule resolved",
            rule_index=rule.index,
            credit_limit=rule.credit_limit,
            reset_seconds=rule.reset_seconds
        )
        return rule.to_resolved()

    def get_engine_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        return {
            "store": self.store.name,
            "total_rules": len(self._rules),
            "has_catch_all": self.store.has_catch_all(),
            "fields": sorted({name for rule in self._rules for name in rule.matchers}),
            "actor_fields": sorted({rule.actor_field for rule in self._rules if rule.actor_field}),
        }
