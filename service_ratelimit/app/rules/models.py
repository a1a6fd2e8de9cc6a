"""
Rule data models for the rate-limit policy resolver.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.errors import (
    InvalidCreditLimitError, InvalidPatternError, InvalidResetSecondsError, ValidationError
)
from .patterns import MatcherSpec, parse_pattern_value

_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


class RuleDefinition(NamedTuple):
    """One rule as produced by a format adapter, in declaration order."""
    pattern: Mapping[str, str]
    credit_limit: Any
    reset_seconds: Any
    actor_field: str = ""
    comment: str = ""


def parse_positive_int(value: Any, error: Callable[[Any], ValidationError]) -> int:
    """Strictly parse value as an integer >= 1, raising error(value) otherwise."""
    if isinstance(value, bool):
        raise error(value)

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise error(value)
        parsed = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if not _INTEGER_TEXT.fullmatch(text):
            raise error(value)
        try:
            parsed = int(text)
        except ValueError:
            # Digit strings past the interpreter's int conversion limit
            raise error(value) from None
    else:
        raise error(value)

    if parsed < 1:
        raise error(value)
    return parsed


def parse_credit_limit(value: Any) -> int:
    return parse_positive_int(value, InvalidCreditLimitError)


def parse_reset_seconds(value: Any) -> int:
    return parse_positive_int(value, InvalidResetSecondsError)


def parse_pattern(pattern: Any) -> Dict[str, MatcherSpec]:
    """Validate a raw pattern mapping and build its matcher specs."""
    if not isinstance(pattern, Mapping):
        raise InvalidPatternError(
            f"Rule pattern must be a mapping, got {type(pattern).__name__}",
            {"pattern": repr(pattern)}
        )

    specs: Dict[str, MatcherSpec] = {}
    for name, value in pattern.items():
        if not isinstance(name, str) or not name:
            raise InvalidPatternError(
                f"Pattern field names must be non-empty strings, got {name!r}",
                {"field": repr(name)}
            )
        if not isinstance(value, str):
            raise InvalidPatternError(
                f"Pattern value for '{name}' must be a string, got {type(value).__name__}",
                {"field": name, "value": repr(value)}
            )
        specs[name] = parse_pattern_value(value)
    return specs


def require_text(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidPatternError(f"{name} must be a string, got {type(value).__name__}", {name: repr(value)})
    return value


@dataclass(frozen=True)
class Rule:
    """Rate-limit rule. Immutable once appended to a store."""
    index: int
    operation: Mapping[str, str]
    matchers: Mapping[str, MatcherSpec]
    credit_limit: int
    reset_seconds: int
    actor_field: str = ""
    comment: str = ""

    @classmethod
    def build(cls, index: int, pattern: Mapping[str, str], matchers: Dict[str, MatcherSpec],
              credit_limit: int, reset_seconds: int, actor_field: str = "", comment: str = "") -> "Rule":
        return cls(
            index=index,
            operation=MappingProxyType(dict(pattern)),
            matchers=MappingProxyType(dict(matchers)),
            credit_limit=credit_limit,
            reset_seconds=reset_seconds,
            actor_field=actor_field,
            comment=comment,
        )

    @property
    def is_catch_all(self) -> bool:
        return not self.matchers

    def subsumes(self, other_matchers: Mapping[str, MatcherSpec]) -> bool:
        """True if every request matching other_matchers also matches this rule."""
        for name, spec in self.matchers.items():
            if name not in other_matchers:
                return False
            if not spec.covers(other_matchers[name]):
                return False
        return True

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        """Evaluate every pattern field against the request attributes."""
        for name, spec in self.matchers.items():
            if name not in attributes:
                return False
            if not spec.matches(attributes[name]):
                return False
        return True

    def to_resolved(self) -> "ResolvedRule":
        return ResolvedRule(
            operation=dict(self.operation),
            credit_limit=self.credit_limit,
            reset_seconds=self.reset_seconds,
            actor_field=self.actor_field,
            comment=self.comment,
            rule_index=self.index,
        )


class ResolvedRule(BaseModel):
    """Quota governing a request, as returned by RuleEngine.resolve."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    operation: Dict[str, str] = Field(..., description="The matched rule's declared pattern")
    credit_limit: int = Field(..., alias="creditLimit", description="Quota capacity per window")
    reset_seconds: int = Field(..., alias="resetSeconds", description="Window length in seconds")
    actor_field: str = Field("", alias="actorField", description="Request attribute identifying the actor")
    comment: str = Field("", description="Free-text rule description")
    rule_index: Optional[int] = Field(None, exclude=True, description="Declaration position of the rule")

    def to_dict(self) -> Dict[str, Any]:
        """Render with the wire names used by rule documents."""
        return self.model_dump(by_alias=True)
