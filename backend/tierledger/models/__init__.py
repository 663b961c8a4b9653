"""ORM Models — SQLAlchemy declarative tables for every ledger collection.

Invariants:
    - All models inherit from Base (db/base.py)
    - Every row carries a feature column: the feature is the namespace

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before
      create_all or alembic autogenerate runs
"""

from tierledger.models.planning_record import PlanningRecord  # noqa: F401
from tierledger.models.change_log_entry import ChangeLogEntryRow  # noqa: F401
from tierledger.models.record_state import RecordStateRow  # noqa: F401
from tierledger.models.rollback_record import RollbackRow  # noqa: F401
from tierledger.models.citation import CitationRow  # noqa: F401
