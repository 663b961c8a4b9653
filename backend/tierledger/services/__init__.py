"""Services Layer — SQL repositories and the engines that orchestrate them.

Invariants:
    - Repositories stage writes (add/flush) and never commit
    - Each engine operation commits exactly once, or rolls back on any exception
    - Engines call core/ for every decision; they only load, lock and persist

Design Decisions:
    - One file per collection and one per engine for locality
"""
