"""001: create kv_entries table

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE kv_entries (
            key             VARCHAR(255)    PRIMARY KEY,
            value           TEXT            NOT NULL,
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_kv_entries_updated_at ON kv_entries (updated_at);")
    op.execute(
        "COMMENT ON TABLE kv_entries IS "
        "'Ledger key-value store: one versioned JSON document per key';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS kv_entries CASCADE;")
