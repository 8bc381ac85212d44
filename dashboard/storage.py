from datetime import datetime, timezone
from typing import Any

from fastapi import Depends
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from dashboard.database import get_db
from dashboard.models import SubtaskCreate, Task, TimeEntry, as_utc


class TaskStorage:
    """Persistence for tasks, subtasks and time entries."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_task(self, task_id: int) -> Task | None:
        return await self.db.get(Task, task_id)

    async def get_subtasks(self, parent_id: int) -> list[Task]:
        query = select(Task).where(Task.parent_id == parent_id).order_by(Task.id)
        result = await self.db.exec(query)
        return list(result.all())

    async def get_user_project_tasks(self, user_id: int, project_id: int) -> list[Task]:
        query = (
            select(Task)
            .where(Task.user_id == user_id, Task.project_id == project_id)
            .order_by(Task.created_at.desc())
        )
        result = await self.db.exec(query)
        return list(result.all())

    async def create_subtask(
        self, parent: Task, data: SubtaskCreate, user_id: int
    ) -> Task:
        subtask = Task.model_validate(
            data,
            update={
                "parent_id": parent.id,
                "project_id": parent.project_id,
                "user_id": user_id,
            },
        )
        self.db.add(subtask)
        await self.db.commit()
        await self.db.refresh(subtask)
        return subtask

    async def update_task(self, task_id: int, fields: dict[str, Any]) -> Task | None:
        task = await self.db.get(Task, task_id)
        if not task:
            return None
        task.sqlmodel_update(fields)
        task.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(task)
        return task

    async def delete_task(self, task_id: int) -> bool:
        task = await self.db.get(Task, task_id)
        if not task:
            return False
        for child in await self.get_subtasks(task_id):
            await self.db.delete(child)
        await self.db.delete(task)
        await self.db.commit()
        return True

    async def update_parent_date_range(self, parent_id: int) -> Task | None:
        """
        Set the parent's range to the union of its subtasks' ranges.

        A subtask ends at its end_date, or its due_date when it has none.
        A bound no remaining subtask provides is cleared.
        """
        parent = await self.db.get(Task, parent_id)
        if not parent:
            return None

        subtasks = await self.get_subtasks(parent_id)
        starts = [as_utc(s.start_date) for s in subtasks if s.start_date is not None]
        ends = [as_utc(s.end_date or s.due_date) for s in subtasks if (s.end_date or s.due_date)]

        parent.start_date = min(starts) if starts else None
        parent.end_date = max(ends) if ends else None
        parent.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(parent)
        return parent

    async def get_time_entries(
        self, user_id: int | None = None, task_id: int | None = None
    ) -> list[TimeEntry]:
        query = select(TimeEntry)
        if user_id is not None:
            query = query.where(TimeEntry.user_id == user_id)
        if task_id is not None:
            query = query.where(TimeEntry.task_id == task_id)
        result = await self.db.exec(query.order_by(TimeEntry.clock_in))
        return list(result.all())


def get_storage(db: AsyncSession = Depends(get_db)) -> TaskStorage:
    return TaskStorage(db)
