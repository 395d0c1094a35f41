"""restrict flight and booking status values

Revision ID: 0005_status_checks
Revises: 0004_reminder_store
Create Date: 2025-10-20
"""
from typing import Sequence, Union
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0005_status_checks'
down_revision: Union[str, None] = '0004_reminder_store'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FLIGHT_STATUSES = ('scheduled', 'boarding', 'departed', 'arrived', 'cancelled', 'delayed')
BOOKING_STATUSES = ('confirmed', 'cancelled', 'completed')


def _in_list(values) -> str:
    return "status IN ({})".format(", ".join(f"'{v}'" for v in values))


def upgrade() -> None:
    op.create_check_constraint('ck_flights_status', 'flights', _in_list(FLIGHT_STATUSES))
    op.create_check_constraint('ck_bookings_status', 'bookings', _in_list(BOOKING_STATUSES))


def downgrade() -> None:
    op.drop_constraint('ck_bookings_status', 'bookings', type_='check')
    op.drop_constraint('ck_flights_status', 'flights', type_='check')
