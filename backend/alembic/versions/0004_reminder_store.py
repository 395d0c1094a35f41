"""add kv_entries table (durable reminder records)

Revision ID: 0004_reminder_store
Revises: 0003_offers
Create Date: 2025-10-06
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0004_reminder_store'
down_revision: Union[str, None] = '0003_offers'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def upgrade() -> None:
    op.create_table(
        'kv_entries',
        # keys look like "flight-reminder-<booking id>-<hours>h"
        sa.Column('key', sa.String(length=255), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )


def downgrade() -> None:
    op.drop_table('kv_entries')
