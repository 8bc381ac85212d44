from typing import Any

from dashboard.cache.decorators import async_cached
from dashboard.cache.invalidation import invalidate, invalidate_subtask
from dashboard.cache.keys import (
    project_tasks_key,
    subtasks_key,
    task_key,
    task_with_subtasks_key,
    worked_hours_key,
)
from dashboard.models import SubtaskCreate, Task, TaskResponse, TaskUpdate, TaskWithSubtasks
from dashboard.storage import TaskStorage

TASK_TTL = 300
SUBTASKS_TTL = 180


def _top_level_keys(task: Task, acting_user_id: int) -> list[str]:
    keys = [
        task_key(task.id),
        task_with_subtasks_key(task.id),
        subtasks_key(task.id),
        worked_hours_key(task.id),
    ]
    if task.project_id is not None:
        keys.append(project_tasks_key(acting_user_id, task.project_id))
    return keys


class TaskService:
    @staticmethod
    @async_cached(lambda task_id, *_, **__: task_key(task_id), ttl=TASK_TTL)
    async def get_task(task_id: int, storage: TaskStorage):
        task = await storage.get_task(task_id)
        return TaskResponse.model_validate(task) if task else None

    @staticmethod
    @async_cached(lambda task_id, *_, **__: task_with_subtasks_key(task_id), ttl=TASK_TTL)
    async def get_task_with_subtasks(task_id: int, storage: TaskStorage):
        task = await storage.get_task(task_id)
        if not task:
            return None
        subtasks = await storage.get_subtasks(task_id)
        return TaskWithSubtasks.model_validate(
            task,
            update={"subtasks": [TaskResponse.model_validate(s) for s in subtasks]},
        )

    @staticmethod
    @async_cached(
        lambda user_id, project_id, *_, **__: project_tasks_key(user_id, project_id),
        ttl=TASK_TTL,
    )
    async def get_project_tasks(user_id: int, project_id: int, storage: TaskStorage):
        tasks = await storage.get_user_project_tasks(user_id, project_id)
        return [TaskResponse.model_validate(task) for task in tasks]

    @staticmethod
    async def update_task(
        task_id: int, task_data: TaskUpdate, storage: TaskStorage, user_id: int
    ):
        task = await storage.get_task(task_id)
        if not task:
            return None

        fields = task_data.model_dump(exclude_unset=True)
        updated = await storage.update_task(task_id, fields)

        if task.parent_id is not None:
            await invalidate_subtask(
                storage,
                parent_id=task.parent_id,
                subtask_id=task_id,
                acting_user_id=user_id,
                project_id=task.project_id,
                changed_fields=fields,
            )
        else:
            await invalidate(*_top_level_keys(task, user_id))
        return updated

    @staticmethod
    async def delete_task(task_id: int, storage: TaskStorage, user_id: int):
        task = await storage.get_task(task_id)
        if not task:
            return False

        parent_id, project_id = task.parent_id, task.project_id
        keys = _top_level_keys(task, user_id)
        keys += [task_key(child.id) for child in await storage.get_subtasks(task_id)]
        await storage.delete_task(task_id)

        if parent_id is not None:
            await invalidate_subtask(
                storage,
                parent_id=parent_id,
                subtask_id=task_id,
                acting_user_id=user_id,
                project_id=project_id,
                recompute_parent=True,
            )
        else:
            await invalidate(*keys)
        return True


class SubtaskService:
    @staticmethod
    @async_cached(lambda task_id, *_, **__: subtasks_key(task_id), ttl=SUBTASKS_TTL)
    async def get_subtasks(task_id: int, storage: TaskStorage):
        subtasks = await storage.get_subtasks(task_id)
        return [TaskResponse.model_validate(s) for s in subtasks]

    @staticmethod
    async def create_subtask(
        parent: Task, data: SubtaskCreate, storage: TaskStorage, user_id: int
    ):
        subtask = await storage.create_subtask(parent, data, user_id)
        await invalidate_subtask(
            storage,
            parent_id=parent.id,
            subtask_id=subtask.id,
            acting_user_id=user_id,
            project_id=parent.project_id,
            changed_fields=data.model_dump(exclude_none=True),
        )
        return subtask

    @staticmethod
    async def get_owned_subtask(parent_id: int, subtask_id: int, storage: TaskStorage):
        subtask = await storage.get_task(subtask_id)
        if not subtask or subtask.parent_id != parent_id:
            return None
        return subtask

    @staticmethod
    async def update_subtask(
        subtask: Task, data: TaskUpdate, storage: TaskStorage, user_id: int
    ):
        fields: dict[str, Any] = data.model_dump(exclude_unset=True)
        parent_id, project_id = subtask.parent_id, subtask.project_id
        updated = await storage.update_task(subtask.id, fields)
        await invalidate_subtask(
            storage,
            parent_id=parent_id,
            subtask_id=subtask.id,
            acting_user_id=user_id,
            project_id=project_id,
            changed_fields=fields,
        )
        return updated

    @staticmethod
    async def delete_subtask(subtask: Task, storage: TaskStorage, user_id: int):
        subtask_id, parent_id, project_id = subtask.id, subtask.parent_id, subtask.project_id
        await storage.delete_task(subtask_id)
        await invalidate_subtask(
            storage,
            parent_id=parent_id,
            subtask_id=subtask_id,
            acting_user_id=user_id,
            project_id=project_id,
            recompute_parent=True,
        )
        return True
