"""In-memory board state with optimistic moves and reconciliation.

BoardState mirrors the To Do (pending) and Done (completed) columns for the
loaded profiles. List mutations happen synchronously inside each operation, so
two operations never interleave on the lists; only network calls suspend.

Cross-column moves are applied before the store confirms them. Each one is
tracked as a PendingMove:

    APPLIED -> CONFIRMED               store accepted the new is_done
    APPLIED -> FAILED -> REVERTED      store rejected it; card moved back
    APPLIED -> FAILED                  rejected, but a later move/removal/reload
                                       already changed the card, so it is left alone

Status writes for the same task are serialized, so the store ends up with the
flag of the last move. Move failures are logged, never surfaced. Failures of add/remove/edit/load are
returned to the caller as an ErrorResponse and leave the lists unchanged.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum

from pydantic import ValidationError

from planboard.core.errors import busy_error, classify_persistence_error
from planboard.core.logging import log_with_context, span
from planboard.domain.create_models import TaskCreate
from planboard.domain.task import Column, DragMove, Task
from planboard.models.service_models import OperationResult, TaskResult
from planboard.services.reorder import reorder
from planboard.services.task_store import TaskStore
from planboard.services.weather_service import WeatherLookup


logger = logging.getLogger(__name__)


class MoveStatus(StrEnum):
    """Persistence state of an optimistic cross-column move."""

    APPLIED = "applied"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REVERTED = "reverted"


@dataclass
class PendingMove:
    """One optimistic cross-column move awaiting the store."""

    task_id: str
    from_column: Column
    from_index: int
    to_column: Column
    status: MoveStatus = MoveStatus.APPLIED
    error: str | None = None


class BoardState:
    """Pending/completed task lists for the current profile selection."""

    def __init__(self, *, tasks: TaskStore, weather: WeatherLookup) -> None:
        self._tasks = tasks
        self._weather = weather
        self.pending: list[Task] = []
        self.completed: list[Task] = []
        self.profile_ids: tuple[str, ...] = ()
        self.is_adding = False
        self._generation = 0
        self._closed = False
        self._background: set[asyncio.Task[None]] = set()
        self._latest_move: dict[str, PendingMove] = {}
        # Most recent status write per task id; each new write waits for it
        self._last_write: dict[str, asyncio.Task[None]] = {}

    # -------------------- helpers --------------------

    def column(self, column: Column) -> list[Task]:
        return self.completed if column is Column.COMPLETED else self.pending

    def _set_column(self, column: Column, tasks: list[Task]) -> None:
        if column is Column.COMPLETED:
            self.completed = tasks
        else:
            self.pending = tasks

    def find(self, task_id: str) -> tuple[Column, int] | None:
        """Locate a task by id as (column, index)."""
        for column in Column:
            for index, task in enumerate(self.column(column)):
                if task.id == task_id:
                    return column, index
        return None

    @property
    def has_outstanding_moves(self) -> bool:
        return bool(self._background)

    # -------------------- loading --------------------

    async def load(self, profile_ids: list[str] | tuple[str, ...]) -> OperationResult:
        """Replace both columns with the store's tasks for the given profiles.

        An empty selection clears the board without querying the store. A
        response that arrives after a newer load or clear is discarded.
        """
        ids = tuple(dict.fromkeys(profile_ids))
        if not ids:
            self.clear()
            return OperationResult.ok()

        self._generation += 1
        generation = self._generation
        self.profile_ids = ids

        with span("board_state.load"):
            try:
                tasks = await self._tasks.list_for_assignees(list(ids))
            except Exception as e:
                logger.error("Failed to load tasks", extra={"profile_ids": list(ids), "error": str(e)})
                return OperationResult.failed(classify_persistence_error(e, action="load tasks"))

        if self._closed or generation != self._generation:
            logger.debug("Discarding stale task load", extra={"profile_ids": list(ids)})
            return OperationResult.refused()

        self.pending = [task for task in tasks if not task.is_done]
        self.completed = [task for task in tasks if task.is_done]
        log_with_context(
            logger, "info", "Board loaded", pending=len(self.pending), completed=len(self.completed)
        )
        return OperationResult.ok()

    def clear(self) -> None:
        """Empty both columns and invalidate in-flight loads."""
        self._generation += 1
        self.profile_ids = ()
        self.pending = []
        self.completed = []

    # -------------------- task lifecycle --------------------

    async def add(self, *, title: str, date: str, location: str, assignee_id: str) -> TaskResult:
        """Create a task with its weather summary and prepend it to To Do.

        Blank fields (or a malformed date) are refused without touching the
        weather API or the store. Only one add may be in flight at a time.
        """
        title, date, location, assignee_id = (value.strip() for value in (title, date, location, assignee_id))
        if not (title and date and location and assignee_id):
            return TaskResult.refused()

        try:
            data = TaskCreate(assignee_id=assignee_id, title=title, date=date, location=location)
        except ValidationError:
            return TaskResult.refused()

        if self.is_adding:
            return TaskResult.failed(busy_error())

        self.is_adding = True
        try:
            with span("board_state.add"):
                weather_summary = await self._weather.resolve_weather(location, date)
                data = data.model_copy(update={"weather_summary": weather_summary})
                try:
                    task = await self._tasks.create(data)
                except Exception as e:
                    logger.error("Failed to create task", extra={"assignee_id": assignee_id, "error": str(e)})
                    return TaskResult.failed(classify_persistence_error(e, action="add the task"))
        finally:
            self.is_adding = False

        # A load that ran during the add may already show the new record
        if not self._closed and task.assignee_id in self.profile_ids and self.find(task.id) is None:
            self.pending = [task, *self.pending]

        log_with_context(logger, "info", "Task added", task_id=task.id, assignee_id=task.assignee_id)
        return TaskResult.ok(task=task)

    async def remove(self, task_id: str, is_done: bool) -> TaskResult:
        """Delete a task; it leaves the board only once the store confirms."""
        with span("board_state.remove"):
            try:
                await self._tasks.delete(task_id)
            except Exception as e:
                logger.error("Failed to delete task", extra={"task_id": task_id, "error": str(e)})
                return TaskResult.failed(classify_persistence_error(e, action="delete the task"))

        if not self._closed:
            column = Column.for_task(is_done)
            self._set_column(column, [task for task in self.column(column) if task.id != task_id])

        logger.info("Deleted task %s", task_id)
        return TaskResult.ok()

    async def edit_title(self, task_id: str, is_done: bool, new_title: str) -> TaskResult:
        """Rename a task. A blank title is a no-op; the weather summary never changes."""
        new_title = new_title.strip()
        if not new_title:
            return TaskResult.refused()

        with span("board_state.edit_title"):
            try:
                await self._tasks.set_title(task_id, new_title)
            except Exception as e:
                logger.error("Failed to rename task", extra={"task_id": task_id, "error": str(e)})
                return TaskResult.failed(classify_persistence_error(e, action="rename the task"))

        updated = None
        if not self._closed:
            column = Column.for_task(is_done)
            tasks = []
            for task in self.column(column):
                if task.id == task_id:
                    task = task.model_copy(update={"title": new_title})
                    updated = task
                tasks.append(task)
            self._set_column(column, tasks)

        return TaskResult.ok(task=updated)

    # -------------------- drag and drop --------------------

    def apply_move(self, move: DragMove) -> PendingMove | None:
        """Apply a drag gesture optimistically.

        Reordering within a column is session-local and needs no store call.
        A cross-column move schedules persistence of the task's is_done flag in
        the background and returns its PendingMove.

        Raises:
            IndexError: If move.from_index is outside the source column
        """
        result = reorder(self.pending, self.completed, move)
        if result.pending is self.pending and result.completed is self.completed:
            return None

        self.pending = list(result.pending)
        self.completed = list(result.completed)

        changed = result.changed_task
        if changed is None or move.to_column is None:
            return None

        pending_move = PendingMove(
            task_id=changed.id,
            from_column=move.from_column,
            from_index=move.from_index,
            to_column=move.to_column,
        )
        self._latest_move[changed.id] = pending_move

        previous = self._last_write.get(changed.id)
        job = asyncio.create_task(self._persist_move(pending_move, changed, previous))
        self._last_write[changed.id] = job
        self._background.add(job)
        job.add_done_callback(self._background.discard)
        job.add_done_callback(lambda done, task_id=changed.id: self._forget_write(task_id, done))
        return pending_move

    def _forget_write(self, task_id: str, job: asyncio.Task[None]) -> None:
        if self._last_write.get(task_id) is job:
            del self._last_write[task_id]

    async def _persist_move(self, pending_move: PendingMove, task: Task, previous: asyncio.Task[None] | None) -> None:
        # Writes for one task land in the order the moves were made
        if previous is not None:
            await asyncio.wait({previous})

        try:
            await self._tasks.set_done(task.id, task.is_done)
        except Exception as e:
            pending_move.status = MoveStatus.FAILED
            pending_move.error = str(e)
            logger.error(
                "Failed to persist task move",
                extra={"task_id": task.id, "to_column": str(pending_move.to_column), "error": str(e)},
            )
            self._revert(pending_move)
            return

        pending_move.status = MoveStatus.CONFIRMED
        if self._latest_move.get(task.id) is pending_move:
            del self._latest_move[task.id]

    def _revert(self, pending_move: PendingMove) -> None:
        """Move a card back after its status change was rejected, if still safe."""
        task_id = pending_move.task_id
        if self._latest_move.get(task_id) is not pending_move:
            logger.warning("Skipping revert: task %s was moved again", task_id)
            return
        del self._latest_move[task_id]

        location = None if self._closed else self.find(task_id)
        if location is None or location[0] is not pending_move.to_column:
            logger.warning("Skipping revert: task %s is no longer where the move left it", task_id)
            return

        column, index = location
        destination = list(self.column(column))
        task = destination.pop(index)
        restored = task.model_copy(update={"is_done": pending_move.from_column.is_done})

        source = list(self.column(pending_move.from_column))
        source.insert(min(pending_move.from_index, len(source)), restored)

        self._set_column(column, destination)
        self._set_column(pending_move.from_column, source)
        pending_move.status = MoveStatus.REVERTED
        logger.info("Reverted move of task %s back to %s", task_id, pending_move.from_column)

    async def drain(self) -> None:
        """Wait for all outstanding move persistence to settle."""
        while self._background:
            await asyncio.gather(*list(self._background))

    def close(self) -> None:
        """Stop applying late results to the lists."""
        self._closed = True
