"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from recurring_match.deps import CurrentUserId, DbSession

    async def my_endpoint(db: DbSession, user_id: CurrentUserId):
        ...

Authentication happens upstream; the gateway forwards the verified user id in
the ``X-User-Id`` header.
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from recurring_match.database import get_db


async def get_current_user_id(x_user_id: Annotated[UUID, Header()]) -> UUID:
    return x_user_id


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]

__all__ = ["CurrentUserId", "DbSession", "get_current_user_id"]
