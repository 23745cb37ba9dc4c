"""Project task board -- four-column stage machine with optimistic writes."""

from src.bizops.board.tasks import (
    TASK_STAGE_ORDER,
    TaskBoard,
    group_tasks_by_stage,
    next_task_stage,
    previous_task_stage,
    task_stage_counts,
)

__all__ = [
    "TASK_STAGE_ORDER",
    "TaskBoard",
    "group_tasks_by_stage",
    "next_task_stage",
    "previous_task_stage",
    "task_stage_counts",
]
