"""
Shared utilities for the Compatibility Service.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI application scaffolding (health, metrics, errors)

Any cross-package logic should live here to avoid import cycles. Do not
import from service_* packages into shared/.
"""
