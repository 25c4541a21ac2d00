"""service programs, schedules, work orders and reminders

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19 09:12:41.518204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f7b9d2'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

schedule_type = postgresql.ENUM('TIME', 'MILEAGE', name='scheduletype', create_type=False)
time_unit = postgresql.ENUM('DAYS', 'WEEKS', name='timeunit', create_type=False)
reminder_status = postgresql.ENUM(
    'UPCOMING', 'DUE_SOON', 'OVERDUE', 'COMPLETED', 'CANCELLED',
    name='reminderstatus', create_type=False,
)
work_order_status = postgresql.ENUM(
    'OPEN', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED',
    name='workorderstatus', create_type=False,
)


def upgrade() -> None:
    """Upgrade schema: fleet collaborators plus the schedule and reminder tables."""
    bind = op.get_bind()
    for enum_type in (schedule_type, time_unit, reminder_status, work_order_status):
        enum_type.create(bind, checkfirst=True)

    # vehicles
    op.create_table(
        'vehicles',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('vin', sa.String(length=32), nullable=True),
        sa.Column('mileage', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),
        sa.CheckConstraint('mileage >= 0', name='vehicles_mileage_nonneg'),
    )

    # service_programs
    op.create_table(
        'service_programs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),
    )

    # service_program_vehicles
    op.create_table(
        'service_program_vehicles',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('program_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('service_programs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vehicle_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_on', sa.Date(), nullable=False),
        sa.Column('mileage_at_assignment', sa.Integer(), nullable=True),
        sa.UniqueConstraint('program_id', 'vehicle_id', name='uq_service_program_vehicles_pair'),
    )

    # service_tasks
    op.create_table(
        'service_tasks',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('category', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('estimated_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('estimated_labour_hours', sa.Numeric(6, 2), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),
    )

    # service_schedules
    op.create_table(
        'service_schedules',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('program_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('service_programs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('schedule_type', schedule_type, nullable=False),

        sa.Column('interval_value', sa.Integer(), nullable=True),
        sa.Column('interval_unit', time_unit, nullable=True),
        sa.Column('buffer_value', sa.Integer(), nullable=True),
        sa.Column('buffer_unit', time_unit, nullable=True),
        sa.Column('anchor_date', sa.Date(), nullable=True),

        sa.Column('mileage_interval', sa.Integer(), nullable=True),
        sa.Column('mileage_buffer', sa.Integer(), nullable=True),
        sa.Column('anchor_mileage', sa.Integer(), nullable=True),

        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),

        sa.CheckConstraint(
            "(schedule_type = 'TIME'"
            " AND interval_value IS NOT NULL AND interval_unit IS NOT NULL"
            " AND buffer_value IS NOT NULL AND buffer_unit IS NOT NULL"
            " AND anchor_date IS NOT NULL"
            " AND mileage_interval IS NULL AND mileage_buffer IS NULL AND anchor_mileage IS NULL)"
            " OR (schedule_type = 'MILEAGE'"
            " AND mileage_interval IS NOT NULL AND mileage_buffer IS NOT NULL"
            " AND interval_value IS NULL AND interval_unit IS NULL"
            " AND buffer_value IS NULL AND buffer_unit IS NULL AND anchor_date IS NULL)",
            name='service_schedules_one_variant',
        ),
        sa.CheckConstraint(
            '(interval_value IS NULL OR interval_value > 0)'
            ' AND (buffer_value IS NULL OR buffer_value > 0)'
            ' AND (mileage_interval IS NULL OR mileage_interval > 0)'
            ' AND (mileage_buffer IS NULL OR mileage_buffer > 0)',
            name='service_schedules_positive_values',
        ),
    )

    # service_schedule_tasks
    op.create_table(
        'service_schedule_tasks',
        sa.Column('schedule_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('service_schedules.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('task_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('service_tasks.id', ondelete='CASCADE'), primary_key=True),
    )

    # work_orders
    op.create_table(
        'work_orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('vehicle_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('status', work_order_status, nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),
    )

    # service_reminders
    op.create_table(
        'service_reminders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('vehicle_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('schedule_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('service_schedules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('program_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('service_programs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('work_orders.id', ondelete='SET NULL'), nullable=True),

        sa.Column('schedule_type', schedule_type, nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('due_mileage', sa.Integer(), nullable=True),
        sa.Column('status', reminder_status, nullable=False),

        sa.Column('schedule_name', sa.Text(), nullable=False),
        sa.Column('interval_value', sa.Integer(), nullable=True),
        sa.Column('interval_unit', time_unit, nullable=True),
        sa.Column('buffer_value', sa.Integer(), nullable=True),
        sa.Column('buffer_unit', time_unit, nullable=True),
        sa.Column('mileage_interval', sa.Integer(), nullable=True),
        sa.Column('mileage_buffer', sa.Integer(), nullable=True),
        sa.Column('tasks', sa.JSON(), nullable=False),

        sa.Column('completed_on', sa.Date(), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=True),

        sa.CheckConstraint(
            '(due_date IS NOT NULL AND due_mileage IS NULL)'
            ' OR (due_date IS NULL AND due_mileage IS NOT NULL)',
            name='service_reminders_one_due_value'
        ),
    )

    # indexes
    op.create_index(
        'ix_service_schedules_program_active',
        'service_schedules', ['program_id', 'is_active'], unique=False
    )
    op.create_index(
        'uq_service_reminders_due_date',
        'service_reminders', ['vehicle_id', 'schedule_id', 'due_date'], unique=True,
        postgresql_where=sa.text('due_date IS NOT NULL'),
    )
    op.create_index(
        'uq_service_reminders_due_mileage',
        'service_reminders', ['vehicle_id', 'schedule_id', 'due_mileage'], unique=True,
        postgresql_where=sa.text('due_mileage IS NOT NULL'),
    )
    op.create_index(
        'ix_service_reminders_vehicle_status',
        'service_reminders', ['vehicle_id', 'status'], unique=False
    )


def downgrade() -> None:
    """Downgrade schema: drop reminders, work orders, schedules and the program tables."""
    op.drop_index('ix_service_reminders_vehicle_status', table_name='service_reminders')
    op.drop_index('uq_service_reminders_due_mileage', table_name='service_reminders')
    op.drop_index('uq_service_reminders_due_date', table_name='service_reminders')
    op.drop_index('ix_service_schedules_program_active', table_name='service_schedules')

    # drop tables in reverse dependency order
    op.drop_table('service_reminders')
    op.drop_table('work_orders')
    op.drop_table('service_schedule_tasks')
    op.drop_table('service_schedules')
    op.drop_table('service_tasks')
    op.drop_table('service_program_vehicles')
    op.drop_table('service_programs')
    op.drop_table('vehicles')

    bind = op.get_bind()
    for enum_type in (work_order_status, reminder_status, time_unit, schedule_type):
        enum_type.drop(bind, checkfirst=True)
