from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user, get_session
from ..domain.entities import Actor
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemySeatBlockRepository, SqlAlchemyVenueRepository
from ..schemas import SeatBlockCreate, SeatBlockRead
from ..usecases import seat_blocks as seat_block_usecase
from ..utils.audit_log import emit_audit_log
from .errors import audit_failure, to_http_exception

router = APIRouter(prefix="/venues", tags=["seat-blocks"])


@router.post("/{venue_id}/seat-blocks", response_model=SeatBlockRead, status_code=status.HTTP_201_CREATED)
async def create_seat_block(
    payload: SeatBlockCreate,
    venue_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_user),
) -> SeatBlockRead:
    async with session.begin():
        try:
            block = await seat_block_usecase.create_seat_block(
                SqlAlchemyVenueRepository(session),
                SqlAlchemySeatBlockRepository(session),
                venue_id=venue_id,
                actor=actor,
                start_at=payload.start_at,
                seat_id=payload.seat_id,
                end_at=payload.end_at,
                duration_minutes=payload.duration_minutes,
                reason=payload.reason,
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    try:
        emit_audit_log(
            action="seat_block.created",
            venue_id=block.venue_id,
            seat_block_id=block.id,
            seat_id=block.seat_id,
            start_at=block.start_at,
            end_at=block.end_at,
            message=block.reason,
        )
    except RuntimeError:
        raise audit_failure()
    return SeatBlockRead.from_entity(block)


@router.get("/{venue_id}/seat-blocks", response_model=List[SeatBlockRead])
async def list_seat_blocks(
    venue_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_user),
) -> list[SeatBlockRead]:
    try:
        blocks = await seat_block_usecase.list_seat_blocks(
            SqlAlchemyVenueRepository(session),
            SqlAlchemySeatBlockRepository(session),
            venue_id=venue_id,
            actor=actor,
        )
    except DomainError as exc:
        raise to_http_exception(exc)
    return [SeatBlockRead.from_entity(block) for block in blocks]


@router.delete("/{venue_id}/seat-blocks/{block_id}", response_model=SeatBlockRead)
async def delete_seat_block(
    venue_id: int = Path(..., ge=1),
    block_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_user),
) -> SeatBlockRead:
    async with session.begin():
        try:
            block = await seat_block_usecase.delete_seat_block(
                SqlAlchemyVenueRepository(session),
                SqlAlchemySeatBlockRepository(session),
                venue_id=venue_id,
                block_id=block_id,
                actor=actor,
            )
        except DomainError as exc:
            raise to_http_exception(exc)

    try:
        emit_audit_log(
            action="seat_block.deleted",
            venue_id=block.venue_id,
            seat_block_id=block.id,
            seat_id=block.seat_id,
        )
    except RuntimeError:
        raise audit_failure()
    return SeatBlockRead.from_entity(block)
