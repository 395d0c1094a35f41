"""initial schema: airlines, flights, bookings, passengers

Revision ID: 0001_initial
Revises:
Create Date: 2025-10-04
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('airlines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False, unique=True),
        sa.Column('code', sa.String(length=3), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
    )
    op.create_index('ix_airlines_name', 'airlines', ['name'])
    op.create_index('ix_airlines_code', 'airlines', ['code'])
    op.create_table('flights',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('airline_id', sa.Integer(), sa.ForeignKey('airlines.id'), nullable=False),
        sa.Column('flight_number', sa.String(length=32), nullable=False),
        sa.Column('origin', sa.String(length=8), nullable=False),
        sa.Column('destination', sa.String(length=8), nullable=False),
        sa.Column('departure', sa.DateTime(), nullable=False),
        sa.Column('arrival', sa.DateTime(), nullable=False),
        sa.Column('price', sa.Numeric(10,2), nullable=False),
        sa.Column('seats_total', sa.Integer(), nullable=False),
        sa.Column('seats_available', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='scheduled'),
        sa.Column('stops', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint('seats_available >= 0 AND seats_available <= seats_total', name='ck_flights_seats'),
    )
    op.create_index('ix_flights_airline_id', 'flights', ['airline_id'])
    op.create_index('ix_flights_flight_number', 'flights', ['flight_number'])
    op.create_index('ix_flights_origin', 'flights', ['origin'])
    op.create_index('ix_flights_destination', 'flights', ['destination'])
    op.create_table('bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('confirmation_id', sa.String(length=32), nullable=False),
        sa.Column('user_email', sa.String(length=255), nullable=False),
        sa.Column('flight_id', sa.Integer(), sa.ForeignKey('flights.id'), nullable=False),
        sa.Column('total_price', sa.Numeric(10,2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='confirmed'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('booked_at', sa.DateTime(), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('confirmation_id'),
    )
    op.create_index('ix_bookings_confirmation_id', 'bookings', ['confirmation_id'])
    op.create_index('ix_bookings_user_email', 'bookings', ['user_email'])
    op.create_table('passengers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('first_name', sa.String(length=120), nullable=False),
        sa.Column('last_name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=False),
        sa.Column('passport_number', sa.String(length=32), nullable=True),
        sa.Column('nationality', sa.String(length=64), nullable=True),
    )
    op.create_index('ix_passengers_booking_id', 'passengers', ['booking_id'])

def downgrade():
    op.drop_index('ix_passengers_booking_id', table_name='passengers')
    op.drop_table('passengers')
    op.drop_index('ix_bookings_user_email', table_name='bookings')
    op.drop_index('ix_bookings_confirmation_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_flights_destination', table_name='flights')
    op.drop_index('ix_flights_origin', table_name='flights')
    op.drop_index('ix_flights_flight_number', table_name='flights')
    op.drop_index('ix_flights_airline_id', table_name='flights')
    op.drop_table('flights')
    op.drop_index('ix_airlines_code', table_name='airlines')
    op.drop_index('ix_airlines_name', table_name='airlines')
    op.drop_table('airlines')
