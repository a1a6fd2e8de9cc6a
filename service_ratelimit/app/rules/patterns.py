"""
Pattern compilation and matcher specs for rate-limit rules.

A rule pattern maps request fields to one of three matcher specs:

- Exact: the value has no ``*`` and is compared by string equality.
- Prefix: the value contains ``*``; it is compiled to a regex anchored at
  the start of the candidate only.
- Wildcard: the bare value ``*``; matches anything but is still reported
  as part of the rule's operation.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Union

WILDCARD = "*"

# Characters with regex meaning that authors always mean literally
_SPECIAL_CHARS = frozenset("\\-[]{}()+?.,^$|#")


def compile_pattern(pattern: str) -> re.Pattern:
    """Compile a wildcard pattern into a start-anchored prefix matcher.

    ``compile_pattern("pages/*").pattern == "^pages/.*"``; the matcher accepts
    "pages/", "pages/x" and "pages/anything/else".
    """
    parts = ["^"]
    for char in pattern:
        if char == WILDCARD:
            parts.append(".*")
        elif char in _SPECIAL_CHARS:
            parts.append("\\" + char)
        else:
            parts.append(char)
    return re.compile("".join(parts), re.DOTALL)


@dataclass(frozen=True)
class Exact:
    """Field must equal value."""
    value: str

    @property
    def literal(self) -> str:
        return self.value

    def matches(self, candidate: Any) -> bool:
        return candidate == self.value

    def covers(self, other: "MatcherSpec") -> bool:
        return isinstance(other, Exact) and other.value == self.value


@dataclass(frozen=True)
class Prefix:
    """Field must match a compiled wildcard pattern from its start."""
    literal: str
    matcher: re.Pattern = field(compare=False, repr=False)

    def matches(self, candidate: Any) -> bool:
        if not isinstance(candidate, str):
            return False
        return self.matcher.match(candidate) is not None

    def covers(self, other: "MatcherSpec") -> bool:
        if isinstance(other, Exact):
            return self.matches(other.value)
        if isinstance(other, Prefix):
            # Distinct prefix patterns are never analyzed for containment
            return other.literal == self.literal
        return False

    def overlaps(self, other: "Prefix") -> bool:
        """True when this matcher accepts the other pattern's literal text."""
        return self.matches(other.literal)


@dataclass(frozen=True)
class Wildcard:
    """Field may hold any value, but must be present in the request."""

    @property
    def literal(self) -> str:
        return WILDCARD

    def matches(self, candidate: Any) -> bool:
        return True

    def covers(self, other: "MatcherSpec") -> bool:
        return True


MatcherSpec = Union[Exact, Prefix, Wildcard]


def parse_pattern_value(value: str) -> MatcherSpec:
    """Pick the matcher spec for an author-written pattern value."""
    if value == WILDCARD:
        return Wildcard()
    if WILDCARD in value:
        return Prefix(value, compile_pattern(value))
    return Exact(value)
