"""Tests for the vectorize worker.

Database, queue, and provider collaborators are replaced by the in-memory
fakes in ``conftest.py``, so the suite runs without Postgres or network
access.
"""
