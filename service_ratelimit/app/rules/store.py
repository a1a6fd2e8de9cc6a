"""
Ordered, append-only rule store.

Declaration order is matching priority. Every rule is checked against the
rules already stored; a rule that an earlier rule subsumes could never be
selected and is rejected.
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from shared.errors import RateLimitPolicyException, RuleStoreFrozenError, UnreachableRuleError
from shared.logging import get_logger
from shared.metrics import PolicyMetrics
from .models import (
    Rule, parse_credit_limit, parse_pattern, parse_reset_seconds, require_text
)
from .patterns import MatcherSpec, Prefix


class RuleStore:
    """Rule collection for one configuration (e.g. one tenant)."""

    def __init__(self, name: str = "default", metrics: Optional[PolicyMetrics] = None):
        self.name = name
        self.metrics = metrics
        self.logger = get_logger("ratelimit.rule_store").bind(store=name)
        self._rules: List[Rule] = []
        self._frozen = False

    def add_rule(self, pattern: Mapping[str, str], credit_limit: Any, reset_seconds: Any,
                 actor_field: str = "", comment: str = "") -> Rule:
        """Validate a rule and append it after every existing rule."""
        if self._frozen:
            raise RuleStoreFrozenError(self.name)

        try:
            rule = self._build_rule(pattern, credit_limit, reset_seconds, actor_field, comment)
        except RateLimitPolicyException as e:
            self.logger.warning(
                "Rule rejected",
                code=e.code,
                error=e.message,
                index=len(self._rules)
            )
            if self.metrics:
                self.metrics.record_rule_rejected(self.name, e.code)
            raise

        self._rules.append(rule)
        if self.metrics:
            self.metrics.record_rule_added(self.name)
        self.logger.debug(
            "Rule added",
            index=rule.index,
            operation=dict(rule.operation),
            credit_limit=rule.credit_limit,
            reset_seconds=rule.reset_seconds,
            actor_field=rule.actor_field
        )
        return rule

    def _build_rule(self, pattern: Mapping[str, str], credit_limit: Any, reset_seconds: Any,
                    actor_field: str, comment: str) -> Rule:
        credit_limit = parse_credit_limit(credit_limit)
        reset_seconds = parse_reset_seconds(reset_seconds)
        matchers = parse_pattern(pattern)
        actor_field = require_text("actor_field", actor_field)
        comment = require_text("comment", comment)

        self._check_reachable(pattern, matchers)

        return Rule.build(
            index=len(self._rules),
            pattern=pattern,
            matchers=matchers,
            credit_limit=credit_limit,
            reset_seconds=reset_seconds,
            actor_field=actor_field,
            comment=comment,
        )

    def _check_reachable(self, pattern: Mapping[str, str], matchers: Dict[str, MatcherSpec]):
        """Raise UnreachableRuleError if an earlier rule subsumes the new one."""
        for existing in self._rules:
            if existing.subsumes(matchers):
                raise UnreachableRuleError(
                    dict(pattern),
                    shadowed_by_index=existing.index,
                    shadowed_by=dict(existing.operation),
                )

        for existing in self._rules:
            overlapping = self._overlapping_prefix_fields(existing, matchers)
            if overlapping:
                self.logger.warning(
                    "Rule possibly shadowed",
                    event_type="rule_possibly_shadowed",
                    operation=dict(pattern),
                    shadowed_by_index=existing.index,
                    fields=overlapping
                )

    @staticmethod
    def _overlapping_prefix_fields(existing: Rule, matchers: Dict[str, MatcherSpec]) -> List[str]:
        """Fields where an earlier prefix accepts a later, distinct prefix's text.

        Only reported when every other field of the earlier rule covers the
        new one, i.e. the prefix comparison is all that keeps it reachable.
        """
        if not set(existing.matchers).issubset(matchers):
            return []

        overlapping = []
        for name, spec in existing.matchers.items():
            other = matchers[name]
            if spec.covers(other):
                continue
            if isinstance(spec, Prefix) and isinstance(other, Prefix) and spec.overlaps(other):
                overlapping.append(name)
                continue
            return []
        return overlapping

    def freeze(self) -> "RuleStore":
        """End the build phase; further add_rule calls fail."""
        if not self._frozen:
            self._frozen = True
            if self.metrics:
                self.metrics.record_store_frozen(self.name, len(self._rules))
            self.logger.info(
                "Rule store frozen",
                rule_count=len(self._rules),
                has_catch_all=self.has_catch_all()
            )
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return tuple(self._rules)

    def has_catch_all(self) -> bool:
        """True if the last rule has an empty pattern."""
        return bool(self._rules) and self._rules[-1].is_catch_all

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(tuple(self._rules))

    def __repr__(self) -> str:
        return f"RuleStore(name={self.name!r}, rules={len(self._rules)}, frozen={self._frozen})"
