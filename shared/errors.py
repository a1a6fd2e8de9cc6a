"""
Shared error handling for the rate-limit policy resolver.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RateLimitPolicyException(Exception):
    """Base exception for the policy resolver."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(RateLimitPolicyException):
    """Rule validation errors raised while building a store."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "VALIDATION_ERROR"):
        super().__init__(code, message, details)


class InvalidCreditLimitError(ValidationError):
    """creditLimit is not an integer >= 1."""

    def __init__(self, value: Any, details: Optional[Dict[str, Any]] = None):
        self.value = value
        super().__init__(
            f"Invalid creditLimit: {value!r} (must be an integer >= 1)",
            {"credit_limit": repr(value), **(details or {})},
            code="INVALID_CREDIT_LIMIT",
        )


class InvalidResetSecondsError(ValidationError):
    """resetSeconds is not an integer >= 1."""

    def __init__(self, value: Any, details: Optional[Dict[str, Any]] = None):
        self.value = value
        super().__init__(
            f"Invalid resetSeconds: {value!r} (must be an integer >= 1)",
            {"reset_seconds": repr(value), **(details or {})},
            code="INVALID_RESET_SECONDS",
        )


class InvalidPatternError(ValidationError):
    """Rule pattern, actor field or comment has the wrong shape."""

    def __init__(self, message: str = "Invalid rule pattern", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="INVALID_PATTERN")


class UnreachableRuleError(ValidationError):
    """An earlier rule already matches every request the new rule would."""

    def __init__(self, operation: Dict[str, str], shadowed_by_index: int,
                 shadowed_by: Dict[str, str]):
        self.operation = operation
        self.shadowed_by_index = shadowed_by_index
        self.shadowed_by = shadowed_by
        super().__init__(
            f"Unreachable rule {operation!r}: rule #{shadowed_by_index} "
            f"{shadowed_by!r} already matches every request it would match",
            {
                "operation": operation,
                "shadowed_by_index": shadowed_by_index,
                "shadowed_by": shadowed_by,
            },
            code="UNREACHABLE_RULE",
        )


class RuleStoreFrozenError(RateLimitPolicyException):
    """Rules cannot be added once the store is serving."""

    def __init__(self, store_name: str):
        super().__init__(
            "STORE_FROZEN",
            f"Rule store '{store_name}' is frozen; build a new store to reconfigure",
            {"store": store_name},
        )


class NoMatchingRuleError(RateLimitPolicyException):
    """No rule in the store matches the request attributes."""

    def __init__(self, attributes: Dict[str, Any], store_name: str = "default"):
        self.attributes = attributes
        super().__init__(
            "NO_MATCHING_RULE",
            f"No rule in store '{store_name}' matches {attributes!r}; "
            "declare an empty-pattern catch-all rule last",
            {"attributes": attributes, "store": store_name},
        )


class RuleLoadError(RateLimitPolicyException):
    """A rule document could not be read or parsed."""

    def __init__(self, message: str = "Failed to load rules", details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_LOAD_ERROR", message, details)
