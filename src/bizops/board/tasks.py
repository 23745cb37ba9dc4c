"""Task board stage machine for project tasks.

Board columns, in order:

    backlog -> em_andamento -> concluida -> revisao

No stage is terminal: every task can step forward or back except past the two
ends of the order, where the move is a no-op.

Tasks are embedded in their project, so there is no task subscription. The
board's task list is derived from the parent project in each Projects
snapshot (``sync``); mutations are applied to that list synchronously and
then written through the gateway at ``projects/{id}/tasks/{taskId}``. The
next project snapshot replaces the local list, so drift cannot outlive one
round trip.
"""

from __future__ import annotations

import secrets
from collections.abc import Iterable
from typing import Any

import structlog
from pydantic import ValidationError

from src.bizops.core.errors import FormValidationError
from src.bizops.schemas import Project, Task, TaskForm, TaskStage
from src.bizops.sync.gateway import Confirm, MutationGateway, is_confirmed

logger = structlog.get_logger(__name__)

TASK_STAGE_ORDER: tuple[TaskStage, ...] = (
    TaskStage.BACKLOG,
    TaskStage.IN_PROGRESS,
    TaskStage.DONE,
    TaskStage.REVIEW,
)


_FIELD_BY_ALIAS = {
    field.alias: name for name, field in Task.model_fields.items() if field.alias
}


def next_task_stage(stage: TaskStage) -> TaskStage | None:
    idx = TASK_STAGE_ORDER.index(stage)
    return TASK_STAGE_ORDER[idx + 1] if idx < len(TASK_STAGE_ORDER) - 1 else None


def previous_task_stage(stage: TaskStage) -> TaskStage | None:
    idx = TASK_STAGE_ORDER.index(stage)
    return TASK_STAGE_ORDER[idx - 1] if idx > 0 else None


def new_task_id() -> str:
    return secrets.token_hex(8)


def group_tasks_by_stage(tasks: Iterable[Task]) -> dict[TaskStage, tuple[Task, ...]]:
    buckets: dict[TaskStage, list[Task]] = {s: [] for s in TASK_STAGE_ORDER}
    for task in tasks:
        buckets[task.status].append(task)
    return {stage: tuple(items) for stage, items in buckets.items()}


def task_stage_counts(tasks: Iterable[Task]) -> dict[TaskStage, int]:
    return {stage: len(items) for stage, items in group_tasks_by_stage(tasks).items()}


class TaskBoard:
    """Board for the tasks of one project.

    Args:
        gateway: Mutation gateway for task writes.
        project: The project whose board is open.
    """

    def __init__(self, gateway: MutationGateway, project: Project) -> None:
        self._gateway = gateway
        self.project_id = project.id
        self.tasks: list[Task] = list(project.tasks)

    # ── Reconciliation ──────────────────────────────────────────────────

    def sync(self, projects: Iterable[Project]) -> None:
        """Re-derive tasks from the parent project in the latest snapshot.

        A project missing from the snapshot (deleted elsewhere) empties the
        board.
        """
        for project in projects:
            if project.id == self.project_id:
                self.tasks = list(project.tasks)
                return
        self.tasks = []

    def get(self, task_id: str) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise KeyError(task_id)

    def by_stage(self) -> dict[TaskStage, tuple[Task, ...]]:
        return group_tasks_by_stage(self.tasks)

    def _replace_local(self, task: Task) -> None:
        self.tasks = [task if t.id == task.id else t for t in self.tasks]

    # ── Mutations ───────────────────────────────────────────────────────

    async def add_task(self, **data: Any) -> Task:
        """Create a task in ``backlog``. Title is required."""
        form = self._validate(data)
        task = Task(
            id=new_task_id(),
            title=form.title,
            description=form.description,
            status=TaskStage.BACKLOG,
            priority=form.priority,
            assignee=form.assignee or None,
            due_date=form.due_date or None,
        )
        self.tasks = [*self.tasks, task]
        await self._gateway.write_task(self.project_id, task.to_store())
        logger.info("board.task_added", project_id=self.project_id, task_id=task.id)
        return task

    async def edit_task(self, task_id: str, **data: Any) -> Task:
        """Rewrite a task's details from form input, keeping its stage."""
        current = self.get(task_id)
        form = self._validate(data)
        task = Task(
            id=task_id,
            title=form.title,
            description=form.description,
            status=current.status,
            priority=form.priority,
            assignee=form.assignee or None,
            due_date=form.due_date or None,
        )
        self._replace_local(task)
        await self._gateway.write_task(self.project_id, task.to_store())
        logger.info("board.task_edited", project_id=self.project_id, task_id=task_id)
        return task

    async def advance(self, task_id: str) -> TaskStage | None:
        """Step forward one column. No-op (returns None) from ``revisao``."""
        task = self.get(task_id)
        return await self._step(task, next_task_stage(task.status))

    async def retreat(self, task_id: str) -> TaskStage | None:
        """Step back one column. No-op (returns None) from ``backlog``."""
        task = self.get(task_id)
        return await self._step(task, previous_task_stage(task.status))

    async def _step(self, task: Task, target: TaskStage | None) -> TaskStage | None:
        if target is None:
            logger.debug("board.move_noop", task_id=task.id, stage=task.status.value)
            return None
        self._replace_local(task.model_copy(update={"status": target}))
        await self._gateway.patch_task(self.project_id, task.id, {"status": target.value})
        logger.info(
            "board.task_moved",
            project_id=self.project_id,
            task_id=task.id,
            from_stage=task.status.value,
            to_stage=target.value,
        )
        return target

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        """Generic field update; any valid stage may be set directly.

        Field names may use either attribute names or stored keys
        (``due_date`` / ``dueDate``). Only the given fields are written.
        """
        current = self.get(task_id)
        by_name = {_FIELD_BY_ALIAS.get(key, key): value for key, value in fields.items()}
        try:
            task = Task.model_validate({**current.model_dump(), **by_name, "id": task_id})
        except ValidationError as exc:
            raise FormValidationError.from_pydantic(exc) from exc

        stored = task.to_store()
        changed: dict[str, Any] = {}
        for name, field in Task.model_fields.items():
            if name != "id" and getattr(task, name) != getattr(current, name):
                key = field.alias or name
                # None removes the field from the stored task.
                changed[key] = stored.get(key)
        self._replace_local(task)
        if changed:
            await self._gateway.patch_task(self.project_id, task_id, changed)
        logger.info(
            "board.task_updated",
            project_id=self.project_id,
            task_id=task_id,
            fields=sorted(changed),
        )
        return task

    async def delete_task(self, task_id: str, *, confirm: Confirm | None = None) -> bool:
        """Remove a task after confirmation. Returns False when not confirmed."""
        self.get(task_id)
        if not is_confirmed(confirm):
            logger.info("board.delete_not_confirmed", task_id=task_id)
            return False
        self.tasks = [t for t in self.tasks if t.id != task_id]
        await self._gateway.remove_task(self.project_id, task_id)
        logger.info("board.task_deleted", project_id=self.project_id, task_id=task_id)
        return True

    @staticmethod
    def _validate(data: dict[str, Any]) -> TaskForm:
        try:
            return TaskForm.model_validate(data)
        except ValidationError as exc:
            raise FormValidationError.from_pydantic(exc) from exc
