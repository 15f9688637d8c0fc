"""Common utilities shared across the worker.

Includes:
- ``config``: Pydantic-based worker configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics for queue reads, jobs, and writes.
- ``errors``: the exception hierarchy used for message disposition.

Import pattern:
- from vectorize.common.config import WorkerConfig
- from vectorize.common.logging import configure_logging
"""
