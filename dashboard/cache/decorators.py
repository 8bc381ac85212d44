from functools import wraps
from typing import Callable
from dashboard.cache.layer import cache_layer


def async_cached(key_builder: Callable[..., str], ttl: int = None):
    """
    Decorator for async functions. key_builder receives same args/kwargs.
    Example:
      @async_cached(lambda task_id, *_, **__: f"subtasks:{task_id}", ttl=180)
      async def get_subtasks(task_id, storage): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            key = key_builder(*args, **kwargs)

            # loader closure calls the original function
            async def loader():
                value = await fn(*args, **kwargs)
                if value is None:
                    return None
                if hasattr(value, "model_dump"):
                    return value.model_dump(mode="json")
                if isinstance(value, list):
                    return [
                        item.model_dump(mode="json") if hasattr(item, "model_dump") else item
                        for item in value
                    ]
                return value

            return await cache_layer.get(key, loader=loader, ttl=ttl)

        return wrapper

    return decorator
