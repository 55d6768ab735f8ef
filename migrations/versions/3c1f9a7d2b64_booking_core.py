"""booking core schema and overlap guard

Revision ID: 3c1f9a7d2b64
Revises: 
Create Date: 2026-10-19 09:12:44.318205

"""
from pathlib import Path
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3c1f9a7d2b64'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SQL_FILES = ("001_extensions.sql", "010_schema.sql", "020_booking_guard.sql")


def upgrade() -> None:
    sql_dir = Path(__file__).resolve().parents[2] / "sql"

    for filename in SQL_FILES:
        op.execute((sql_dir / filename).read_text())


def downgrade() -> None:
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS bookings_no_overlap;")
    for table in (
        "booking_audit",
        "booking_payments",
        "bookings",
        "blocks",
        "venue_settings",
        "venue_stripe_settings",
        "services",
        "tables",
        "venues",
    ):
        op.drop_table(table, schema="public")
    op.execute("DROP EXTENSION IF EXISTS btree_gist;")
    op.execute("DROP EXTENSION IF EXISTS pgcrypto;")
