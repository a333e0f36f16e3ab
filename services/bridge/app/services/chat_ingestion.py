from __future__ import annotations

import re
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ..core.logging import get_logger
from ..core.metrics import inc
from ..schemas.telegram import TelegramMessage
from .cursor import UpdateCursorTracker
from .identity_store import IdentityMappingStore
from .telegram_client import TelegramClient

BIND_COMMAND = "/gitlabusername"
_BIND_COMMAND_RE = re.compile(re.escape(BIND_COMMAND) + r" (\w+)", re.ASCII)

logger = get_logger(__name__)


@dataclass
class IngestResult:
    updates: int = 0
    mappings: int = 0
    offset: int | None = None


def parse_bind_command(text: str | None) -> str | None:
    """Return the claimed GitLab username, or None if text is not a bind command."""
    if not text:
        return None
    match = _BIND_COMMAND_RE.fullmatch(text)
    if match is None:
        return None
    return match.group(1)


def _bind_commands(messages: list[TelegramMessage]) -> list[tuple[TelegramMessage, str]]:
    out: list[tuple[TelegramMessage, str]] = []
    for message in messages:
        gitlab_username = parse_bind_command(message.text)
        if gitlab_username is None:
            continue
        if message.sender is None or not message.sender.username:
            # notifications are routed by Telegram username
            logger.info("ingestion.bind_without_username", chat_id=message.chat.id)
            continue
        out.append((message, gitlab_username))
    return out


def ingest_updates(session: Session, telegram: TelegramClient) -> IngestResult:
    tracker = UpdateCursorTracker(session)
    offset = tracker.current_offset()
    updates = telegram.get_updates(offset)
    if not updates:
        return IngestResult(offset=offset)

    last_seen = max(u.update_id for u in updates)
    messages = [u.message for u in updates if u.message is not None and u.message.text]

    store = IdentityMappingStore(session)
    mappings = 0
    for message, gitlab_username in _bind_commands(messages):
        store.replace(
            telegram_username=message.sender.username,
            telegram_chat_id=message.chat.id,
            gitlab_username=gitlab_username,
            first_name=message.sender.first_name,
            last_name=message.sender.last_name,
        )
        mappings += 1
        logger.info(
            "ingestion.mapping_replaced",
            telegram_username=message.sender.username,
            gitlab_username=gitlab_username,
        )

    new_offset = tracker.advance(last_seen)
    session.commit()

    inc("updates_total", len(updates))
    if mappings:
        inc("mappings_replaced_total", mappings)
    return IngestResult(updates=len(updates), mappings=mappings, offset=new_offset)
