import logging
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.entities import Actor
from .models import User, UserStatus
from .utils.auth import decode_access_token
from .utils.request_context import set_actor_id

logger = logging.getLogger(__name__)

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": detail, "code": "UNAUTHORIZED"},
        headers=_BEARER_CHALLENGE,
    )


async def get_current_user(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> Actor:
    if authorization is None:
        raise _unauthorized("Authentication required.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Bearer token required.")

    settings = get_settings()
    try:
        user_id = decode_access_token(
            token.strip(),
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
        )
    except ValueError as exc:
        raise _unauthorized("Invalid or expired token.") from exc

    try:
        user = await session.scalar(select(User).where(User.id == user_id, User.status == UserStatus.ACTIVE))
    except ProgrammingError as exc:
        logger.exception("user lookup failed; is the users table migrated?")
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Internal server error.", "code": "INTERNAL_ERROR"},
        ) from exc
    if user is None:
        await session.rollback()
        raise _unauthorized("User not found.")

    email = (user.email or "").lower() or None
    actor = Actor(id=user.id, email=email, is_admin=email is not None and email in settings.admin_emails)
    # close the implicit read transaction; handlers open their own with session.begin()
    await session.rollback()
    set_actor_id(actor.id)
    return actor
