from fastapi import APIRouter, Depends, HTTPException, Response, status

from dashboard.auth import CurrentUser
from dashboard.cache.ratelimit import RateLimitResult, rate_limit
from dashboard.models import SubtaskCreate, TaskResponse, TaskUpdate
from dashboard.services.task_service import SubtaskService
from dashboard.storage import TaskStorage, get_storage

router = APIRouter(prefix="/tasks/{task_id}/subtasks", tags=["subtasks"])

CREATE_SUBTASK_LIMIT = 20
CREATE_SUBTASK_WINDOW_MS = 600_000


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds())
    return headers


async def _get_owned_subtask(task_id: int, subtask_id: int, storage: TaskStorage):
    subtask = await SubtaskService.get_owned_subtask(task_id, subtask_id, storage)
    if not subtask:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Subtask with id {subtask_id} not found",
        )
    return subtask


@router.get("", response_model=list[TaskResponse])
async def get_subtasks(
    task_id: int, user_id: CurrentUser, storage: TaskStorage = Depends(get_storage)
):
    """Get all subtasks for a task"""
    return await SubtaskService.get_subtasks(task_id, storage)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_subtask(
    task_id: int,
    subtask_data: SubtaskCreate,
    user_id: CurrentUser,
    response: Response,
    storage: TaskStorage = Depends(get_storage),
):
    """Create a subtask under a task"""
    limit = await rate_limit(
        f"create-subtask:{user_id}", CREATE_SUBTASK_LIMIT, CREATE_SUBTASK_WINDOW_MS
    )
    if not limit.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers=rate_limit_headers(limit),
        )
    response.headers.update(rate_limit_headers(limit))

    parent = await storage.get_task(task_id)
    if not parent:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Parent task with id {task_id} not found",
        )

    return await SubtaskService.create_subtask(parent, subtask_data, storage, user_id)


@router.put("/{subtask_id}", response_model=TaskResponse)
async def update_subtask(
    task_id: int,
    subtask_id: int,
    subtask_data: TaskUpdate,
    user_id: CurrentUser,
    storage: TaskStorage = Depends(get_storage),
):
    subtask = await _get_owned_subtask(task_id, subtask_id, storage)
    return await SubtaskService.update_subtask(subtask, subtask_data, storage, user_id)


@router.delete("/{subtask_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subtask(
    task_id: int,
    subtask_id: int,
    user_id: CurrentUser,
    storage: TaskStorage = Depends(get_storage),
):
    subtask = await _get_owned_subtask(task_id, subtask_id, storage)
    await SubtaskService.delete_subtask(subtask, storage, user_id)
