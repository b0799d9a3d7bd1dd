from datetime import timedelta
from types import SimpleNamespace
from typing import Any

import jwt
import pytest
from fastapi import HTTPException
from sqlalchemy.exc import ProgrammingError
from app.config import Settings, get_settings
from app.deps import get_current_user
from app.utils.auth import create_access_token, decode_access_token
from app.utils.request_context import get_actor_id, set_actor_id


class DummySession:
    def __init__(self, user: SimpleNamespace | None | Exception) -> None:
        self.user = user
        self.rollbacks = 0

    async def __aenter__(self) -> "DummySession":  # pragma: no cover
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:  # pragma: no cover
        return False

    async def scalar(self, *args: Any, **kwargs: Any) -> SimpleNamespace | None:
        if isinstance(self.user, Exception):
            raise self.user
        return self.user

    async def rollback(self) -> None:
        self.rollbacks += 1


@pytest.fixture(autouse=True)
def _set_auth_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    monkeypatch.delenv("ADMIN_EMAILS", raising=False)
    get_settings.cache_clear()
    set_actor_id(None)


def _token(user_id: int = 123, **kwargs: Any) -> str:
    settings = Settings(auth_secret="testsecret")
    return create_access_token(user_id=user_id, secret=settings.auth_secret, algorithm=settings.auth_algorithm, **kwargs)


@pytest.mark.asyncio
async def test_get_current_user_accepts_valid_token() -> None:
    session = DummySession(SimpleNamespace(id=123, email="Guest@Example.com"))
    actor = await get_current_user(authorization=f"Bearer {_token()}", session=session)  # type: ignore[arg-type]
    assert actor.id == 123
    assert actor.email == "guest@example.com"
    assert actor.is_admin is False
    # read transaction is closed so the handler can begin its own
    assert session.rollbacks == 1
    assert get_actor_id() == 123


@pytest.mark.asyncio
async def test_get_current_user_rejects_missing_header() -> None:
    session = DummySession(SimpleNamespace(id=1, email="a@example.com"))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(authorization=None, session=session)  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401
    assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.mark.asyncio
async def test_get_current_user_rejects_expired_token() -> None:
    session = DummySession(SimpleNamespace(id=1, email="a@example.com"))
    token = _token(1, expires_delta=timedelta(seconds=-1))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(authorization=f"Bearer {token}", session=session)  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_get_current_user_rejects_when_user_missing() -> None:
    session = DummySession(None)
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(authorization=f"Bearer {_token(99)}", session=session)  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == {"error": "User not found.", "code": "UNAUTHORIZED"}


@pytest.mark.asyncio
async def test_get_current_user_handles_missing_users_table() -> None:
    session = DummySession(ProgrammingError("missing", None, Exception("cause")))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user(authorization=f"Bearer {_token(1)}", session=session)  # type: ignore[arg-type]
    assert excinfo.value.status_code == 500


def test_decode_rejects_non_numeric_subject() -> None:
    token = jwt.encode({"sub": "abc", "exp": 9999999999}, "testsecret", algorithm="HS256")
    with pytest.raises(ValueError):
        decode_access_token(token, secret="testsecret", algorithms=["HS256"])


def test_decode_requires_expiry() -> None:
    token = jwt.encode({"sub": "1"}, "testsecret", algorithm="HS256")
    with pytest.raises(ValueError):
        decode_access_token(token, secret="testsecret", algorithms=["HS256"])
