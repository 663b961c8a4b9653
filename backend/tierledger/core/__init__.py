"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic given their inputs (clock passed in
      or read once at the edge)

Design Decisions:
    - Functional core separated from imperative shell: scope, rollback and
      citation rules are testable without a database
"""
