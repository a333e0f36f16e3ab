from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_identity_mappings"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "identity_mappings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("telegram_username", sa.String(length=64), nullable=False),
        sa.Column("telegram_chat_id", sa.BigInteger(), nullable=False),
        sa.Column("telegram_first_name", sa.String(length=255), nullable=True),
        sa.Column("telegram_last_name", sa.String(length=255), nullable=True),
        sa.Column("gitlab_username", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index(
        "ix_identity_mappings_created_at", "identity_mappings", ["created_at"]
    )
    op.create_index(
        "ix_identity_mappings_telegram_username",
        "identity_mappings",
        [sa.text("lower(telegram_username)")],
    )
    op.create_index(
        "ix_identity_mappings_gitlab_username",
        "identity_mappings",
        [sa.text("lower(gitlab_username)")],
    )


def downgrade() -> None:
    op.drop_index("ix_identity_mappings_gitlab_username", table_name="identity_mappings")
    op.drop_index("ix_identity_mappings_telegram_username", table_name="identity_mappings")
    op.drop_index("ix_identity_mappings_created_at", table_name="identity_mappings")
    op.drop_table("identity_mappings")
