from fastapi import APIRouter, Depends, HTTPException, Query, status

from dashboard.auth import CurrentUser
from dashboard.models import TaskResponse, TaskUpdate, TaskWithSubtasks, WorkedHours
from dashboard.services.task_service import TaskService
from dashboard.services.worked_hours import WorkedHoursService
from dashboard.storage import TaskStorage, get_storage

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _not_found(task_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Task with id {task_id} not found",
    )


@router.get("", response_model=list[TaskResponse])
async def get_project_tasks(
    user_id: CurrentUser,
    project_id: int = Query(ge=1),
    storage: TaskStorage = Depends(get_storage),
):
    """List the acting user's tasks in a project"""
    return await TaskService.get_project_tasks(user_id, project_id, storage)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int, user_id: CurrentUser, storage: TaskStorage = Depends(get_storage)
):
    """Get a specific task by ID"""

    task = await TaskService.get_task(task_id, storage)

    if not task:
        raise _not_found(task_id)
    return task


@router.get("/{task_id}/with-subtasks", response_model=TaskWithSubtasks)
async def get_task_with_subtasks(
    task_id: int, user_id: CurrentUser, storage: TaskStorage = Depends(get_storage)
):
    task = await TaskService.get_task_with_subtasks(task_id, storage)
    if not task:
        raise _not_found(task_id)
    return task


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    user_id: CurrentUser,
    storage: TaskStorage = Depends(get_storage),
):
    task = await TaskService.update_task(task_id, task_data, storage, user_id)
    if not task:
        raise _not_found(task_id)
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int, user_id: CurrentUser, storage: TaskStorage = Depends(get_storage)
):
    """Delete a task and its subtasks"""
    result = await TaskService.delete_task(task_id, storage, user_id)

    if not result:
        raise _not_found(task_id)


@router.get("/{task_id}/worked-hours", response_model=WorkedHours)
async def get_worked_hours(
    task_id: int, user_id: CurrentUser, storage: TaskStorage = Depends(get_storage)
):
    """Total worked hours for a task from its time entries"""
    if not await storage.get_task(task_id):
        raise _not_found(task_id)
    return await WorkedHoursService.get_worked_hours(task_id, storage)
