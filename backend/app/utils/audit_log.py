from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from .request_context import get_actor_id, get_request_id

AuditAction = Literal[
    "reservation.created",
    "reservation.cancelled",
    "reservation.edited",
    "seat_block.created",
    "seat_block.deleted",
]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).isoformat()
    return value


def emit_audit_log(
    *,
    action: AuditAction,
    venue_id: Optional[int],
    reservation_id: Optional[int] = None,
    seat_block_id: Optional[int] = None,
    user_id: Optional[int] = None,
    seat_id: Optional[int] = None,
    table_id: Optional[int] = None,
    seat_count: Optional[int] = None,
    start_at: Optional[datetime] = None,
    end_at: Optional[datetime] = None,
    status_from: Optional[Any] = None,
    status_to: Optional[Any] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "request_id": get_request_id(),
        "actor_id": get_actor_id(),
        "venue_id": venue_id,
        "reservation_id": reservation_id,
        "seat_block_id": seat_block_id,
        "user_id": user_id,
        "seat_id": seat_id,
        "table_id": table_id,
        "seat_count": seat_count,
        "start_at": start_at,
        "end_at": end_at,
        "status_from": status_from,
        "status_to": status_to,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: _jsonable(v) for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
