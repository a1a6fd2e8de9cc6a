"""
Shared utilities for the rate-limit policy resolver.

This package aggregates the ambient building blocks used by the resolver
and its command-line tooling:

- config: Resolver settings via pydantic-settings
- logging: Structured logging with structlog
- metrics: Prometheus counters for registration and resolution
- errors: Canonical error types and responses

Do not import from service_ratelimit into shared/.
"""
