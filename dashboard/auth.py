import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from typing_extensions import Annotated

from dashboard.cache.session import cache_session, get_cached_session
from dashboard.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_access_token(user_id: int, settings: Settings) -> str:
    return jwt.encode(
        {"userId": user_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm
    )


def get_token(request: Request, settings: Settings = Depends(get_settings)) -> Optional[str]:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):]
    return None


def verify_token(token: str, settings: Settings) -> Optional[int]:
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None
    user_id = payload.get("userId")
    return int(user_id) if user_id is not None else None


async def get_current_user(
    token: Optional[str] = Depends(get_token),
    settings: Settings = Depends(get_settings),
) -> int:
    """Resolve the acting user, consulting the session cache before the JWT."""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user_id = await get_cached_session(token)
    if user_id is not None:
        return user_id

    user_id = verify_token(token, settings)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    await cache_session(token, user_id, settings.session_cache_ttl_seconds)
    return user_id


CurrentUser = Annotated[int, Depends(get_current_user)]
