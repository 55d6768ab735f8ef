"""booking windows and online bookable flags

Revision ID: 7d4e2a91c5f0
Revises: 3c1f9a7d2b64
Create Date: 2026-10-19 14:27:05.614930

"""
from pathlib import Path
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '7d4e2a91c5f0'
down_revision: Union[str, None] = '3c1f9a7d2b64'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    sql_dir = Path(__file__).resolve().parents[2] / "sql"
    op.execute((sql_dir / "030_booking_windows.sql").read_text())


def downgrade() -> None:
    op.drop_table("booking_windows", schema="public")
    op.drop_column("tables", "online_bookable")
    op.drop_column("services", "online_bookable")
    op.drop_column("services", "active")
