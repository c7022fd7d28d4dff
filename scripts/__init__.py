"""Utility scripts for operating the message service.

Scripts include:
- ``init_db.py``: create the PostgreSQL schema used by ``PostgresStore``.
"""
