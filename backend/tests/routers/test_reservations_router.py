from datetime import datetime, timedelta, timezone
from typing import Any, cast

import pytest
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from app.domain.entities import Actor, BareReservation, ReservationWithContext, Venue
from app.domain.errors import BookingNotAllowedError, ConflictError
from app.models import ReservationStatus
from app.routers import reservations as router
from app.schemas import BookingCreated, ReservationCreate, ReservationPatch
from app.usecases.reservations import CreatedBooking

ACTOR = Actor(id=200, email="guest@example.com")
START = datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc)


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _reservation(res_id: int = 100, **kwargs: Any) -> BareReservation:
    fields: dict[str, Any] = {
        "id": res_id,
        "venue_id": 1,
        "user_id": ACTOR.id,
        "start_at": START,
        "end_at": START + timedelta(hours=1),
        "seat_id": 1,
        "table_id": 10,
    }
    fields.update(kwargs)
    return BareReservation(**fields)


@pytest.fixture(autouse=True)
def _stub_repositories(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SqlAlchemyVenueRepository",
        "SqlAlchemyReservationRepository",
        "SqlAlchemySeatBlockRepository",
        "SqlAlchemyNotificationQueue",
    ):
        monkeypatch.setattr(router, name, lambda s: s)


@pytest.fixture
def audit_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(router, "emit_audit_log", fake_emit)
    return calls


@pytest.mark.asyncio
async def test_create_reservation_emits_audit_per_row(
    monkeypatch: pytest.MonkeyPatch, audit_calls: list[dict[str, Any]]
) -> None:
    rows = [_reservation(100, seat_id=1), _reservation(101, seat_id=2)]
    seen: dict[str, Any] = {}

    async def fake_create(*args: object, **kwargs: Any) -> CreatedBooking:
        seen.update(kwargs)
        return CreatedBooking(venue=Venue(id=1, name="Study Hall"), reservations=rows)

    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)

    payload = ReservationCreate(venueId=1, seatIds=[1, 2], startAt=START, endAt=START + timedelta(hours=1))
    result: BookingCreated = await router.create_reservation(
        payload=payload,
        session=cast(AsyncSession, DummySession()),
        actor=ACTOR,
    )

    assert seen["request"].seat_ids == (1, 2)
    assert seen["actor"] == ACTOR
    assert result.seat_count == 2
    assert [r.reservation_id for r in result.reservations] == [100, 101]
    assert [call["action"] for call in audit_calls] == ["reservation.created", "reservation.created"]
    assert audit_calls[1]["seat_id"] == 2


@pytest.mark.asyncio
async def test_create_reservation_rejects_incomplete_payload(audit_calls: list[dict[str, Any]]) -> None:
    payload = ReservationCreate(venueId=1, startAt=START, endAt=START + timedelta(hours=1))
    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(payload=payload, session=cast(AsyncSession, DummySession()), actor=ACTOR)
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail["code"] == "VALIDATION_ERROR"  # type: ignore[index]
    assert audit_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status_code", "code"),
    [
        (ConflictError("taken"), 409, "CONFLICT"),
        (BookingNotAllowedError("paused", code="VENUE_PAUSED", public_message="Back at noon"), 403, "VENUE_PAUSED"),
    ],
)
async def test_create_reservation_maps_domain_errors(
    monkeypatch: pytest.MonkeyPatch,
    audit_calls: list[dict[str, Any]],
    error: Exception,
    status_code: int,
    code: str,
) -> None:
    async def fake_create(*args: object, **kwargs: object) -> CreatedBooking:
        raise error

    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)

    payload = ReservationCreate(venueId=1, seatId=1, startAt=START, endAt=START + timedelta(hours=1))
    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(payload=payload, session=cast(AsyncSession, DummySession()), actor=ACTOR)
    assert excinfo.value.status_code == status_code
    assert excinfo.value.detail["code"] == code  # type: ignore[index]
    assert audit_calls == []


@pytest.mark.asyncio
async def test_paused_error_shows_public_message(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> CreatedBooking:
        raise BookingNotAllowedError("paused", code="VENUE_PAUSED", public_message="Back at noon")

    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)
    payload = ReservationCreate(venueId=1, seatId=1, startAt=START, endAt=START + timedelta(hours=1))
    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(payload=payload, session=cast(AsyncSession, DummySession()), actor=ACTOR)
    assert excinfo.value.detail == {"error": "Back at noon", "code": "VENUE_PAUSED"}


@pytest.mark.asyncio
async def test_cancel_reservation_log_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    cancelled = _reservation(status=ReservationStatus.CANCELLED)

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[BareReservation, ReservationStatus]:
        return cancelled, ReservationStatus.ACTIVE

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.update_reservation(
            payload=ReservationPatch(status="cancelled"),
            reservation_id=cancelled.id,
            session=cast(AsyncSession, DummySession()),
            actor=ACTOR,
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_cancel_reservation_audits_status_change(
    monkeypatch: pytest.MonkeyPatch, audit_calls: list[dict[str, Any]]
) -> None:
    cancelled = _reservation(status=ReservationStatus.CANCELLED)

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[BareReservation, ReservationStatus]:
        return cancelled, ReservationStatus.ACTIVE

    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)

    result = await router.update_reservation(
        payload=ReservationPatch(status="cancelled"),
        reservation_id=cancelled.id,
        session=cast(AsyncSession, DummySession()),
        actor=ACTOR,
    )
    assert result.status == ReservationStatus.CANCELLED
    (call,) = audit_calls
    assert call["action"] == "reservation.cancelled"
    assert (call["status_from"], call["status_to"]) == (ReservationStatus.ACTIVE, ReservationStatus.CANCELLED)


@pytest.mark.asyncio
async def test_edit_reservation_records_previous_window(
    monkeypatch: pytest.MonkeyPatch, audit_calls: list[dict[str, Any]]
) -> None:
    before = _reservation()
    after = _reservation(start_at=START + timedelta(hours=2), end_at=START + timedelta(hours=3), seat_id=2)

    async def fake_edit(*args: object, **kwargs: object) -> tuple[BareReservation, BareReservation]:
        return before, after

    monkeypatch.setattr(router.reservation_usecase, "edit_reservation", fake_edit)

    result = await router.update_reservation(
        payload=ReservationPatch(startAt=after.start_at, endAt=after.end_at, seatId=2),
        reservation_id=before.id,
        session=cast(AsyncSession, DummySession()),
        actor=ACTOR,
    )
    assert result.seat_id == 2
    (call,) = audit_calls
    assert call["action"] == "reservation.edited"
    assert call["extra"]["seat_id_from"] == 1
    assert call["extra"]["start_at_from"] == START.isoformat()


@pytest.mark.asyncio
async def test_patch_without_changes_is_rejected(audit_calls: list[dict[str, Any]]) -> None:
    with pytest.raises(HTTPException) as excinfo:
        await router.update_reservation(
            payload=ReservationPatch(),
            reservation_id=1,
            session=cast(AsyncSession, DummySession()),
            actor=ACTOR,
        )
    assert excinfo.value.status_code == 400

    with pytest.raises(HTTPException):
        await router.update_reservation(
            payload=ReservationPatch(status="cancelled", seatId=2),
            reservation_id=1,
            session=cast(AsyncSession, DummySession()),
            actor=ACTOR,
        )
    assert audit_calls == []


@pytest.mark.asyncio
async def test_get_my_reservation_not_found(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_get(*args: object, **kwargs: object) -> ReservationWithContext | None:
        return None

    monkeypatch.setattr(router.reservation_usecase, "get_user_reservation", fake_get)
    with pytest.raises(HTTPException) as excinfo:
        await router.get_my_reservation(reservation_id=5, session=cast(AsyncSession, DummySession()), actor=ACTOR)
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_list_my_reservations_includes_venue_name(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_list(*args: object, **kwargs: object) -> list[ReservationWithContext]:
        return [ReservationWithContext(reservation=_reservation(), venue_name="Study Hall", table_name="Counter")]

    monkeypatch.setattr(router.reservation_usecase, "list_user_reservations", fake_list)
    (row,) = await router.list_my_reservations(session=cast(AsyncSession, DummySession()), actor=ACTOR)
    assert (row.venue_name, row.table_name) == ("Study Hall", "Counter")
