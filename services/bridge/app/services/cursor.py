from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.logging import get_logger
from ..models.update_offsets import UpdateOffset


class UpdateCursorTracker:
    """Durable position in the Telegram update stream.

    Each advance appends a row; the newest row holds the next update id to
    request. Committing is left to the caller so the advance lands in the
    same transaction as the mappings it covers.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._logger = get_logger(__name__)

    def current_offset(self) -> int | None:
        row = self._session.execute(
            select(UpdateOffset.update_id).order_by(UpdateOffset.id.desc()).limit(1)
        ).scalar_one_or_none()
        return row

    def advance(self, last_seen_update_id: int) -> int:
        next_offset = last_seen_update_id + 1
        current = self.current_offset()
        if current is not None and next_offset < current:
            self._logger.warning(
                "cursor.advance_backwards_ignored", current=current, requested=next_offset
            )
            return current
        self._session.add(UpdateOffset(update_id=next_offset))
        self._session.flush()
        return next_offset
