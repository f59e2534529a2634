"""
Shared utilities for the casbin-pgx adapter.

This package aggregates the ambient building blocks used by the rule
and persistence packages:

- config: Adapter configuration via pydantic-settings
- logging: Structured logging with structlog
- errors: Canonical error types and responses
- metrics: Prometheus operation metrics

Do not import from casbin_pgx.persistence into shared/.
"""
