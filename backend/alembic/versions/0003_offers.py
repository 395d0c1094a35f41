"""offers table with discount rules

Revision ID: 0003_offers
Revises: 0002_notifications
Create Date: 2025-10-05
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0003_offers'
down_revision = '0002_notifications'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'offers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount', sa.Numeric(5,2), nullable=False),
        sa.Column('valid_from', sa.DateTime(), nullable=False),
        sa.Column('valid_to', sa.DateTime(), nullable=False),
        sa.Column('applicable_flights', sa.JSON(), nullable=True),
        sa.Column('applicable_airlines', sa.JSON(), nullable=True),
        sa.Column('applicable_routes', sa.JSON(), nullable=True),
        sa.Column('min_price', sa.Numeric(10,2), nullable=True),
        sa.Column('max_discount', sa.Numeric(10,2), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('TRUE')),
        # CURRENT_TIMESTAMP works on both Postgres and SQLite
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('discount >= 0 AND discount <= 100', name='ck_offers_discount'),
    )
    op.create_index('ix_offers_position', 'offers', ['position'])
    op.create_index('ix_offers_active_window', 'offers', ['is_active', 'valid_from', 'valid_to'])


def downgrade():
    op.drop_index('ix_offers_active_window', table_name='offers')
    op.drop_index('ix_offers_position', table_name='offers')
    op.drop_table('offers')
