"""Tests for the subtask invalidation cascade."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from dashboard.cache.invalidation import (
    invalidate_subtask,
    invalidate_user_cache,
    subtask_cache_keys,
    touches_date_range,
)


@pytest.fixture
def storage():
    storage = MagicMock()
    storage.update_parent_date_range = AsyncMock()
    return storage


class TestCascadeKeys:
    def test_keys_with_project(self):
        assert subtask_cache_keys(10, 11, 3, 7) == [
            "subtasks:10",
            "task:10:with-subtasks",
            "task:11",
            "tasks:user:3:project:7",
        ]

    def test_keys_without_project(self):
        assert subtask_cache_keys(10, 11, 3, None) == [
            "subtasks:10",
            "task:10:with-subtasks",
            "task:11",
        ]

    @pytest.mark.parametrize(
        "fields, expected",
        [
            ({"due_date"}, True),
            ({"start_date", "title"}, True),
            (["end_date"], True),
            ({"title", "status"}, False),
            ((), False),
        ],
    )
    def test_date_fields_detected(self, fields, expected):
        assert touches_date_range(fields) is expected


class TestInvalidateSubtask:
    @pytest.mark.asyncio
    async def test_due_date_change_deletes_exact_key_set(self, storage, memory_store, use_store):
        use_store(memory_store)
        for key in ["subtasks:5", "task:5:with-subtasks", "task:6", "tasks:user:2:project:9", "task:5"]:
            await memory_store.set(key, "{}")

        removed = await invalidate_subtask(
            storage,
            parent_id=5,
            subtask_id=6,
            acting_user_id=2,
            project_id=9,
            changed_fields={"due_date": "2026-10-20"},
        )

        assert removed == 4
        assert set(memory_store.deleted) == {
            "subtasks:5",
            "task:5:with-subtasks",
            "task:6",
            "tasks:user:2:project:9",
        }
        assert await memory_store.get("task:5") == "{}"
        storage.update_parent_date_range.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_non_date_change_skips_recompute(self, storage, memory_store, use_store):
        use_store(memory_store)

        await invalidate_subtask(
            storage, parent_id=5, subtask_id=6, acting_user_id=2, changed_fields={"title": "x"}
        )

        storage.update_parent_date_range.assert_not_awaited()
        assert memory_store.deleted == ["subtasks:5", "task:5:with-subtasks", "task:6"]

    @pytest.mark.asyncio
    async def test_recompute_happens_before_delete(self, storage, memory_store, use_store):
        use_store(memory_store)
        order = []
        storage.update_parent_date_range.side_effect = lambda parent_id: order.append("recompute")
        original_delete = memory_store.delete

        async def recording_delete(*keys):
            order.append("delete")
            return await original_delete(*keys)

        memory_store.delete = recording_delete

        await invalidate_subtask(
            storage, parent_id=1, subtask_id=2, acting_user_id=3, recompute_parent=True
        )

        assert order == ["recompute", "delete"]

    @pytest.mark.asyncio
    async def test_backend_failure_is_not_raised(self, storage, memory_store, use_store):
        use_store(memory_store)
        memory_store.failing = True

        removed = await invalidate_subtask(
            storage, parent_id=1, subtask_id=2, acting_user_id=3, changed_fields={"end_date"}
        )

        assert removed == 0
        storage.update_parent_date_range.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_already_absent_keys_remove_nothing(self, storage, memory_store, use_store):
        use_store(memory_store)

        removed = await invalidate_subtask(storage, parent_id=1, subtask_id=2, acting_user_id=3)

        assert removed == 0

    @pytest.mark.asyncio
    async def test_no_backend(self, storage):
        removed = await invalidate_subtask(
            storage, parent_id=1, subtask_id=2, acting_user_id=3, recompute_parent=True
        )

        assert removed == 0
        storage.update_parent_date_range.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_recompute_failure_still_invalidates(self, storage, memory_store, use_store):
        use_store(memory_store)
        storage.update_parent_date_range.side_effect = RuntimeError("db gone")

        with pytest.raises(RuntimeError):
            await invalidate_subtask(
                storage, parent_id=1, subtask_id=2, acting_user_id=3, recompute_parent=True
            )

        assert "subtasks:1" in memory_store.deleted


class TestInvalidateUserCache:
    @pytest.mark.asyncio
    async def test_full_backend_clears_all_user_views(self, memory_store, use_store):
        use_store(memory_store)
        for key in ["projects:user:4", "tasks:user:4:project:1", "tasks:user:4:project:2", "stats:user:4", "stats:user:5"]:
            await memory_store.set(key, "[]")

        assert await invalidate_user_cache(4) == 4
        assert await memory_store.get("stats:user:5") == "[]"

    @pytest.mark.asyncio
    async def test_restricted_backend_only_exact_keys(self, restricted_store, use_store):
        use_store(restricted_store)
        for key in ["projects:user:4", "tasks:user:4:project:1", "stats:user:4"]:
            await restricted_store.set(key, "[]")

        assert await invalidate_user_cache(4) == 2
        assert await restricted_store.get("tasks:user:4:project:1") == "[]"
