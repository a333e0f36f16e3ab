from sqlalchemy import BigInteger, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base
from .mixins import CreatedAtMixin


class IdentityMapping(CreatedAtMixin, Base):
    __tablename__ = "identity_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_username: Mapped[str] = mapped_column(String(64), nullable=False)
    telegram_chat_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    telegram_first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telegram_last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    gitlab_username: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return (
            f"IdentityMapping(telegram_username={self.telegram_username!r}, "
            f"gitlab_username={self.gitlab_username!r}, chat_id={self.telegram_chat_id})"
        )


# Both lookups compare case-insensitively
Index("ix_identity_mappings_telegram_username", func.lower(IdentityMapping.telegram_username))
Index("ix_identity_mappings_gitlab_username", func.lower(IdentityMapping.gitlab_username))
