from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from dashboard.auth import get_token
from dashboard.cache.session import invalidate_session
from dashboard.core.config import SettingsDep

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    response: Response,
    settings: SettingsDep,
    token: Optional[str] = Depends(get_token),
):
    """Drop the cached session and clear the session cookie"""
    if token:
        await invalidate_session(token)
    response.delete_cookie(settings.session_cookie_name)
