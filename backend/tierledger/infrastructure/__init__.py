"""Infrastructure Layer — database sessions, logging and record locks.

Invariants:
    - Infrastructure holds no domain rules; it maps low-level failures
      (SQLAlchemy errors, lock waits) onto the typed errors in core/errors.py
"""
