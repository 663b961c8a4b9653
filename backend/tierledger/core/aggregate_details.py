"""Detail Aggregation — rolls child records up into a parent summary.

Invariants:
    - Pure: children are passed in, nothing is read or written
    - progress.completed + progress.in_progress + progress.pending == progress.total
      (cancelled and blocked children count as pending)
    - Overall status is completed only when every child is completed
"""

import re
from dataclasses import dataclass, field

from tierledger.core.domain_types import MAX_NEXT_STEPS, RecordStatus, Tier
from tierledger.core.records import Record


@dataclass
class Progress:
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    total: int = 0


@dataclass
class AggregatedDetails:
    objectives: list[str] = field(default_factory=list)
    tasks: list[dict] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    status: RecordStatus = RecordStatus.PENDING
    progress: Progress = field(default_factory=Progress)


@dataclass
class RecordSummary:
    title: str
    status: RecordStatus
    objectives: list[str]
    progress: Progress
    key_dependencies: list[str]
    next_steps: list[str]


def summarize_objective(record: Record) -> str:
    """First sentence of the description, else the title."""
    if record.description:
        first = re.split(r"[.!?]", record.description, maxsplit=1)[0].strip()
        return first or record.description[:100]
    return record.title


def aggregate_details(parent: Record, children: list[Record]) -> AggregatedDetails:
    own = [c for c in children if c.parent_id == parent.id]
    result = AggregatedDetails(progress=Progress(total=len(own)))

    for child in own:
        if child.tier in (Tier.PHASE, Tier.SESSION):
            result.objectives.append(summarize_objective(child))
        if child.tier == Tier.TASK:
            result.tasks.append({
                "id": child.id, "title": child.title, "status": child.status.value,
            })
        result.dependencies.extend(child.blocked_by)

        if child.status == RecordStatus.COMPLETED:
            result.progress.completed += 1
        elif child.status == RecordStatus.IN_PROGRESS:
            result.progress.in_progress += 1
        else:
            result.progress.pending += 1

    progress = result.progress
    if progress.total and progress.completed == progress.total:
        result.status = RecordStatus.COMPLETED
    elif progress.in_progress or progress.completed:
        result.status = RecordStatus.IN_PROGRESS
    return result


def generate_summary(parent: Record, children: list[Record]) -> RecordSummary:
    aggregated = aggregate_details(parent, children)
    next_steps = [
        t["title"] for t in aggregated.tasks
        if t["status"] in (RecordStatus.PENDING.value, RecordStatus.IN_PROGRESS.value)
    ][:MAX_NEXT_STEPS]
    return RecordSummary(
        title=parent.title,
        status=aggregated.status,
        objectives=aggregated.objectives,
        progress=aggregated.progress,
        key_dependencies=list(dict.fromkeys(aggregated.dependencies)),
        next_steps=next_steps,
    )
