from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.fsm.states import UserRole
from app.models.user import User


async def verify_admin_key(
    x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
) -> str:
    """
    Validate the Admin Key header.
    Returns the key if valid, raises 401 otherwise.
    """
    if not x_admin_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing admin key",
        )

    valid_key = settings.admin_api_key
    if not valid_key or x_admin_key != valid_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )

    return x_admin_key


async def get_current_user_id(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
) -> int:
    """Caller identity, set by the session layer in front of this service."""
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return x_user_id


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    return user


def ensure_can_access(caller: User, user_id: int) -> None:
    """Clients see only their own data; therapists and admins see any client."""
    if caller.id == user_id:
        return
    if caller.role in (UserRole.THERAPIST.value, UserRole.ADMIN.value):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
