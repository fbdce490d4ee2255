"""Mark rooms past their lifetime as inactive."""

from __future__ import annotations

import logging

from ember.domain.game import RoomService

logger = logging.getLogger(__name__)

_service = RoomService()


async def deactivate_expired_rooms() -> int:
    """Reads already treat expired rooms as missing; this frees their codes and indexes."""
    try:
        return await _service.expire_rooms()
    except Exception:
        logger.exception("room_expiry_sweep_failed")
        raise
