"""Common utilities shared across services.

Includes:
- ``config``: Pydantic-based service configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``context``: request-scoped context (request id, user, deadline).
- ``metrics``: Prometheus metrics helpers.
- ``tracing``: OpenTelemetry setup and span helpers.

Import pattern:
- from hnn.common.config import BaseConfig
- from hnn.common.logging import configure_logging
"""
