from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_update_offsets"
down_revision = "0001_identity_mappings"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "update_offsets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("update_id", sa.BigInteger(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("ix_update_offsets_created_at", "update_offsets", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_update_offsets_created_at", table_name="update_offsets")
    op.drop_table("update_offsets")
