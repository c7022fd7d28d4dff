"""Tests for the inference message service.

Unit tests run against in-process doubles (``tests.fakes``) and the
in-memory store; no engine or database is required.
"""
