"""002: add expires_at to kv_entries

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("ALTER TABLE kv_entries ADD COLUMN expires_at TIMESTAMPTZ NULL;")
    op.execute(
        "CREATE INDEX idx_kv_entries_expires_at ON kv_entries (expires_at) "
        "WHERE expires_at IS NOT NULL;"
    )
    op.execute(
        "COMMENT ON COLUMN kv_entries.expires_at IS "
        "'NULL for ledger data; set for session entries, swept once past';"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_kv_entries_expires_at;")
    op.execute("ALTER TABLE kv_entries DROP COLUMN IF EXISTS expires_at;")
