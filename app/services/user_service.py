"""
User service: read access to the User aggregate.

Users are provisioned out of band (see ``scripts/seed.py``); the HTTP API
only looks them up.  No caching: the row is small and rarely read.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "bio": user.bio,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    """Return the user as a dict, or None when missing or soft-deleted."""
    result = await db.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()
    if user is None:
        return None
    return _user_to_dict(user)
