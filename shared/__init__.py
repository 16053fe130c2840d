"""
Shared utilities for the storage access layer.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with secret redaction
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Transport-failure retry policy with cancellable backoff

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
