"""Cache key builders. Every reader and invalidator derives keys from here."""


def task_key(task_id: int) -> str:
    return f"task:{task_id}"


def task_with_subtasks_key(task_id: int) -> str:
    return f"task:{task_id}:with-subtasks"


def worked_hours_key(task_id: int) -> str:
    return f"task:{task_id}:worked-hours"


def subtasks_key(parent_id: int) -> str:
    return f"subtasks:{parent_id}"


def project_tasks_key(user_id: int, project_id: int) -> str:
    return f"tasks:user:{user_id}:project:{project_id}"


def user_cache_patterns(user_id: int) -> list[str]:
    return [
        f"projects:user:{user_id}",
        f"tasks:user:{user_id}*",
        f"stats:user:{user_id}",
    ]
