from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Optional

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
_actor_id_ctx: ContextVar[int | None] = ContextVar("actor_id", default=None)


def generate_request_id() -> str:
    return uuid.uuid4().hex


def set_request_id(request_id: str | None) -> None:
    """Store request id in context (None to clear)."""
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


def set_actor_id(actor_id: int | None) -> None:
    """Remember the authenticated user for audit lines emitted later in the request."""
    _actor_id_ctx.set(actor_id)


def get_actor_id() -> Optional[int]:
    return _actor_id_ctx.get()
