"""Job execution and the worker loop.

- ``executor``: ``execute_job`` turns one message into persisted embeddings.
- ``worker``: ``run_worker`` reads one message, runs it, and decides whether
  to delete it.
"""

from .executor import execute_job
from .worker import run_worker

__all__ = ["execute_job", "run_worker"]
