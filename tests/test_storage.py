"""Tests for parent date-range recomputation in TaskStorage."""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from dashboard.models import Task
from dashboard.storage import TaskStorage


def day(n: int) -> datetime:
    return datetime(2026, 1, n, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def storage(session_factory):
    async with session_factory() as session:
        yield TaskStorage(session)


@pytest_asyncio.fixture
async def parent(storage):
    task = Task(title="Release", project_id=1, start_date=day(1), end_date=day(10))
    storage.db.add(task)
    await storage.db.commit()
    await storage.db.refresh(task)
    return task


async def add_child(storage: TaskStorage, parent: Task, **dates) -> Task:
    child = Task(title="Step", project_id=parent.project_id, parent_id=parent.id, **dates)
    storage.db.add(child)
    await storage.db.commit()
    await storage.db.refresh(child)
    return child


class TestUpdateParentDateRange:
    @pytest.mark.asyncio
    async def test_union_of_subtask_ranges(self, storage, parent):
        await add_child(storage, parent, start_date=day(3), end_date=day(5))
        await add_child(storage, parent, start_date=day(2), due_date=day(8))

        updated = await storage.update_parent_date_range(parent.id)

        assert updated.start_date.date() == day(2).date()
        assert updated.end_date.date() == day(8).date()

    @pytest.mark.asyncio
    async def test_end_date_wins_over_due_date(self, storage, parent):
        await add_child(storage, parent, start_date=day(2), due_date=day(9), end_date=day(4))

        updated = await storage.update_parent_date_range(parent.id)

        assert updated.end_date.date() == day(4).date()

    @pytest.mark.asyncio
    async def test_cleared_child_start_clears_parent_start(self, storage, parent):
        child = await add_child(storage, parent, start_date=day(3), end_date=day(5))
        await storage.update_parent_date_range(parent.id)

        await storage.update_task(child.id, {"start_date": None})
        updated = await storage.update_parent_date_range(parent.id)

        assert updated.start_date is None
        assert updated.end_date.date() == day(5).date()

    @pytest.mark.asyncio
    async def test_deleting_last_subtask_clears_range(self, storage, parent):
        child = await add_child(storage, parent, start_date=day(3), end_date=day(5))
        await storage.update_parent_date_range(parent.id)

        await storage.delete_task(child.id)
        updated = await storage.update_parent_date_range(parent.id)

        assert updated.start_date is None
        assert updated.end_date is None

    @pytest.mark.asyncio
    async def test_undated_subtasks_clear_range(self, storage, parent):
        await add_child(storage, parent)

        updated = await storage.update_parent_date_range(parent.id)

        assert updated.start_date is None
        assert updated.end_date is None

    @pytest.mark.asyncio
    async def test_missing_parent(self, storage):
        assert await storage.update_parent_date_range(999) is None
