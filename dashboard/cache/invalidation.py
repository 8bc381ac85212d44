"""
Invalidation cascade for the task/subtask hierarchy.

A parent task's date range is derived from its subtasks, so a subtask
mutation can make cached views of the parent stale as well as the subtask's
own. The cascade runs after the mutation and after the parent range has been
recomputed; deleting earlier would let a concurrent reader cache the
pre-mutation state again.
"""

import logging
from typing import Iterable, Optional

from dashboard.cache.keys import (
    project_tasks_key,
    subtasks_key,
    task_key,
    task_with_subtasks_key,
    user_cache_patterns,
)
from dashboard.cache.layer import cache_layer

logger = logging.getLogger(__name__)

DATE_FIELDS = frozenset({"start_date", "due_date", "end_date"})


def subtask_cache_keys(
    parent_id: int,
    subtask_id: int,
    acting_user_id: int,
    project_id: Optional[int] = None,
) -> list[str]:
    keys = [
        subtasks_key(parent_id),
        task_with_subtasks_key(parent_id),
        task_key(subtask_id),
    ]
    if project_id is not None:
        keys.append(project_tasks_key(acting_user_id, project_id))
    return keys


def touches_date_range(changed_fields: Iterable[str]) -> bool:
    return not DATE_FIELDS.isdisjoint(changed_fields)


async def invalidate(*keys: str) -> int:
    """Delete exact keys; failures are logged by the cache layer, never raised."""
    return await cache_layer.delete(*keys)


async def invalidate_subtask(
    storage,
    *,
    parent_id: int,
    subtask_id: int,
    acting_user_id: int,
    project_id: Optional[int] = None,
    changed_fields: Iterable[str] = (),
    recompute_parent: bool = False,
) -> int:
    """
    Finish a subtask mutation that has already been written.

    Recomputes the parent's date range when ``recompute_parent`` is set or a
    date field changed, then deletes every cached view embedding the subtask
    or the parent's range. Returns the number of cache entries removed.
    """
    try:
        if recompute_parent or touches_date_range(changed_fields):
            await storage.update_parent_date_range(parent_id)
    finally:
        keys = subtask_cache_keys(parent_id, subtask_id, acting_user_id, project_id)
        removed = await invalidate(*keys)
        logger.debug(f"Invalidated {removed} entries for subtask {subtask_id} of {parent_id}")
    return removed


async def invalidate_user_cache(user_id: int) -> int:
    removed = 0
    for pattern in user_cache_patterns(user_id):
        removed += await cache_layer.delete_pattern(pattern)
    return removed
