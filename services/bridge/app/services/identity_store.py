from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..models.identity_mappings import IdentityMapping


class IdentityMappingStore:
    def __init__(self, session: Session) -> None:
        self._session = session

    def replace(
        self,
        telegram_username: str,
        telegram_chat_id: int,
        gitlab_username: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> IdentityMapping:
        """Bind a Telegram username to a GitLab username, dropping older claims.

        The delete and insert share the caller's transaction, so concurrent
        readers on read-committed isolation see either the old or the new row.
        """
        self._session.execute(
            delete(IdentityMapping)
            .where(func.lower(IdentityMapping.telegram_username) == telegram_username.lower())
            .execution_options(synchronize_session="fetch")
        )
        mapping = IdentityMapping(
            telegram_username=telegram_username,
            telegram_chat_id=telegram_chat_id,
            telegram_first_name=first_name,
            telegram_last_name=last_name,
            gitlab_username=gitlab_username,
        )
        self._session.add(mapping)
        self._session.flush()
        return mapping

    def find_by_gitlab_username(self, gitlab_username: str) -> list[IdentityMapping]:
        stmt = (
            select(IdentityMapping)
            .where(func.lower(IdentityMapping.gitlab_username) == gitlab_username.lower())
            .order_by(IdentityMapping.id.asc())
        )
        return list(self._session.execute(stmt).scalars())

    def find_by_telegram_username(self, telegram_username: str) -> IdentityMapping | None:
        stmt = (
            select(IdentityMapping)
            .where(func.lower(IdentityMapping.telegram_username) == telegram_username.lower())
            .order_by(IdentityMapping.id.desc())
            .limit(1)
        )
        return self._session.execute(stmt).scalar_one_or_none()
