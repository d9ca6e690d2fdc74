"""initial scheduling schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPOINTMENT_STATUS = sa.Enum('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED', 'NO_SHOW', name='appointmentstatus')
APPOINTMENT_ORIGIN = sa.Enum('CUSTOMER', 'OWNER', name='appointmentorigin')


def upgrade() -> None:
    op.create_table(
        'businesses',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_user_id', sa.String(450), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('timezone', sa.String(100), nullable=False, server_default='UTC'),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.String(300), nullable=True),
        sa.Column('is_onboarding_complete', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'services',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('buffer_before', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('buffer_after', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('business_id', 'name', name='uq_services_business_name'),
        sa.CheckConstraint('duration_minutes BETWEEN 1 AND 1440', name='ck_services_duration'),
        sa.CheckConstraint('buffer_before BETWEEN 0 AND 1440', name='ck_services_buffer_before'),
        sa.CheckConstraint('buffer_after BETWEEN 0 AND 1440', name='ck_services_buffer_after'),
    )

    op.create_table(
        'booking_policies',
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('slot_interval_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('advance_notice_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cancellation_window_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_advance_days', sa.Integer(), nullable=False, server_default='60'),
        sa.CheckConstraint('slot_interval_minutes BETWEEN 5 AND 1440', name='ck_policy_slot_interval'),
        sa.CheckConstraint('advance_notice_minutes BETWEEN 0 AND 10080', name='ck_policy_advance_notice'),
        sa.CheckConstraint('cancellation_window_minutes BETWEEN 0 AND 10080', name='ck_policy_cancellation_window'),
        sa.CheckConstraint('max_advance_days BETWEEN 0 AND 365', name='ck_policy_max_advance_days'),
    )

    op.create_table(
        'working_hours',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('weekday', sa.Integer(), nullable=False),
        sa.Column('is_closed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('open_time', sa.Time(), nullable=True),
        sa.Column('close_time', sa.Time(), nullable=True),
        sa.UniqueConstraint('business_id', 'weekday', name='uq_working_hours_business_weekday'),
        sa.CheckConstraint('weekday BETWEEN 1 AND 7', name='ck_working_hours_weekday'),
    )

    op.create_table(
        'time_off',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('start_utc', sa.DateTime(), nullable=False, index=True),
        sa.Column('end_utc', sa.DateTime(), nullable=False),
        sa.Column('reason', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('end_utc > start_utc', name='ck_time_off_range'),
    )

    op.create_table(
        'appointments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, index=True),
        # Historical record survives service deletion
        sa.Column('service_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('services.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_email', sa.String(200), nullable=False),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('start_utc', sa.DateTime(), nullable=False),
        sa.Column('end_utc', sa.DateTime(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('status', APPOINTMENT_STATUS, nullable=False, index=True),
        sa.Column('origin', APPOINTMENT_ORIGIN, nullable=False),
        sa.Column('confirmation_token', sa.String(64), nullable=True, unique=True, index=True),
        sa.Column('consumed_token', sa.String(64), nullable=True, unique=True, index=True),
        sa.Column('cancelled_utc', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.String(200), nullable=True),
        sa.Column('created_utc', sa.DateTime(), nullable=False),
        sa.CheckConstraint('end_utc > start_utc', name='ck_appointments_range'),
        sa.CheckConstraint('duration_minutes BETWEEN 1 AND 1440', name='ck_appointments_duration'),
    )
    op.create_index('ix_appointments_business_start', 'appointments', ['business_id', 'start_utc'])
    op.create_index('ix_appointments_service_start', 'appointments', ['service_id', 'start_utc'])


def downgrade() -> None:
    op.drop_index('ix_appointments_service_start', table_name='appointments')
    op.drop_index('ix_appointments_business_start', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('time_off')
    op.drop_table('working_hours')
    op.drop_table('booking_policies')
    op.drop_table('services')
    op.drop_table('businesses')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        op.execute('DROP TYPE IF EXISTS appointmentorigin')
        op.execute('DROP TYPE IF EXISTS appointmentstatus')
