"""Typed access to task records in the store."""

import logging

from planboard.core.config import constants
from planboard.core.db_client import DBClient, build_any_of_filter, sanitize_param
from planboard.domain.create_models import TaskCreate
from planboard.domain.task import Task


logger = logging.getLogger(__name__)

TODOS = "todos"


class TaskStore:
    """CRUD over task records, scoped by assignee.

    Store errors (DatabaseError and subclasses) propagate; callers decide how
    to surface them.
    """

    def __init__(self, db: DBClient) -> None:
        self._db = db

    async def list_for_assignees(self, assignee_ids: list[str]) -> list[Task]:
        """Return tasks owned by any of the profiles, newest first."""
        if not assignee_ids:
            return []

        filter_query = build_any_of_filter("assignee_id", assignee_ids)
        per_page = constants.DEFAULT_PER_PAGE_LIMIT
        tasks: list[Task] = []
        page = 1
        while True:
            records = await self._db.list_records(
                collection=TODOS,
                filter_query=filter_query,
                sort="-created",
                page=page,
                per_page=per_page,
            )
            tasks.extend(Task.model_validate(record) for record in records)
            if len(records) < per_page:
                break
            page += 1

        logger.debug("Listed %d tasks for %d profiles", len(tasks), len(assignee_ids))
        return tasks

    async def create(self, data: TaskCreate) -> Task:
        record = await self._db.create_record(collection=TODOS, data=data.model_dump())
        return Task.model_validate(record)

    async def set_done(self, task_id: str, is_done: bool) -> Task:
        record = await self._db.update_record(collection=TODOS, record_id=task_id, data={"is_done": is_done})
        return Task.model_validate(record)

    async def set_title(self, task_id: str, title: str) -> Task:
        record = await self._db.update_record(collection=TODOS, record_id=task_id, data={"title": title})
        return Task.model_validate(record)

    async def delete(self, task_id: str) -> None:
        await self._db.delete_record(collection=TODOS, record_id=task_id)

    async def delete_for_assignee(self, assignee_id: str) -> int:
        """Delete every task owned by a profile and return how many were removed."""
        filter_query = f'assignee_id = "{sanitize_param(assignee_id)}"'
        deleted = 0
        while True:
            records = await self._db.list_records(
                collection=TODOS, filter_query=filter_query, per_page=constants.DEFAULT_PER_PAGE_LIMIT
            )
            if not records:
                break
            for record in records:
                await self._db.delete_record(collection=TODOS, record_id=str(record["id"]))
                deleted += 1
        return deleted
