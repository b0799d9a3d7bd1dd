from datetime import datetime, timedelta, timezone
from typing import Any, cast

import pytest
from fastapi import HTTPException
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from app.domain.entities import Actor, SeatBlock
from app.domain.errors import AuthorizationError
from app.routers import seat_blocks as router
from app.schemas import SeatBlockCreate

OWNER = Actor(id=7, email="owner@example.com")
START = datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc)


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _block(**kwargs: Any) -> SeatBlock:
    fields: dict[str, Any] = {"id": 3, "venue_id": 1, "start_at": START, "end_at": START + timedelta(hours=2)}
    fields.update(kwargs)
    return SeatBlock(**fields)


@pytest.fixture(autouse=True)
def _stub_repositories(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(router, "SqlAlchemyVenueRepository", lambda s: s)
    monkeypatch.setattr(router, "SqlAlchemySeatBlockRepository", lambda s: s)


@pytest.mark.asyncio
async def test_create_seat_block_emits_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    block = _block(seat_id=2, reason="Deep clean")
    seen: dict[str, Any] = {}
    calls: list[dict[str, Any]] = []

    async def fake_create(*args: object, **kwargs: Any) -> SeatBlock:
        seen.update(kwargs)
        return block

    monkeypatch.setattr(router.seat_block_usecase, "create_seat_block", fake_create)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    payload = SeatBlockCreate(seatId=2, startAt=START, durationMinutes=120, reason="Deep clean")
    result = await router.create_seat_block(
        payload=payload, venue_id=1, session=cast(AsyncSession, DummySession()), actor=OWNER
    )

    assert seen["duration_minutes"] == 120
    assert seen["actor"] == OWNER
    assert result.seat_block_id == 3
    (call,) = calls
    assert call["action"] == "seat_block.created"
    assert call["seat_block_id"] == 3
    assert call["message"] == "Deep clean"


@pytest.mark.asyncio
async def test_create_seat_block_forbidden(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> SeatBlock:
        raise AuthorizationError("You do not manage this venue.")

    monkeypatch.setattr(router.seat_block_usecase, "create_seat_block", fake_create)
    with pytest.raises(HTTPException) as excinfo:
        await router.create_seat_block(
            payload=SeatBlockCreate(startAt=START, durationMinutes=30),
            venue_id=1,
            session=cast(AsyncSession, DummySession()),
            actor=Actor(id=8),
        )
    assert excinfo.value.status_code == 403
    assert excinfo.value.detail == {"error": "You do not manage this venue.", "code": "FORBIDDEN"}


@pytest.mark.asyncio
async def test_delete_seat_block_audit_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_delete(*args: object, **kwargs: object) -> SeatBlock:
        return _block()

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(router.seat_block_usecase, "delete_seat_block", fake_delete)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)
    with pytest.raises(HTTPException) as excinfo:
        await router.delete_seat_block(
            venue_id=1, block_id=3, session=cast(AsyncSession, DummySession()), actor=OWNER
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_list_seat_blocks(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_list(*args: object, **kwargs: object) -> list[SeatBlock]:
        return [_block(), _block(id=4, seat_id=1)]

    monkeypatch.setattr(router.seat_block_usecase, "list_seat_blocks", fake_list)
    blocks = await router.list_seat_blocks(venue_id=1, session=cast(AsyncSession, DummySession()), actor=OWNER)
    assert [(b.seat_block_id, b.seat_id) for b in blocks] == [(3, None), (4, 1)]


def test_payload_rejects_non_positive_duration() -> None:
    with pytest.raises(PydanticValidationError):
        SeatBlockCreate(startAt=START, durationMinutes=0)


def test_payload_reads_naive_datetimes_as_utc() -> None:
    payload = SeatBlockCreate(startAt=datetime(2030, 1, 7, 10, 0), endAt="2030-01-07T12:00:00")
    assert payload.start_at == START
    assert payload.end_at == START + timedelta(hours=2)
