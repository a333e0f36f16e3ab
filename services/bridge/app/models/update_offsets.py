from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base
from .mixins import CreatedAtMixin


class UpdateOffset(CreatedAtMixin, Base):
    """Append-only cursor history; the row with the highest id is current."""

    __tablename__ = "update_offsets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # next Telegram update_id to request
    update_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
