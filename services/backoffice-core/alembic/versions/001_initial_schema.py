"""Initial schema

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


# SQLAlchemy stores enum member names, not their display values
ENUMS = {
    'staffrole': ['ADMIN', 'SUPERVISOR', 'BROKER'],
    'vehiclestatus': ['AVAILABLE', 'RESERVED', 'SOLD'],
    'leadstage': ['NUEVO', 'CALIFICADO', 'CITADO', 'EN_SEGUIMIENTO', 'GANADO', 'PERDIDO', 'NO_SHOW'],
    'leadchannel': ['FACEBOOK', 'WHATSAPP', 'CALL', 'VISIT', 'OTHER'],
    'leadlanguage': ['ENGLISH', 'SPANISH'],
    'notetype': ['MANUAL', 'SYSTEM', 'STAGE_CHANGE', 'OWNER_CHANGE', 'DEALERSHIP_CHANGE', 'VEHICLE_LINK', 'AI_ANALYSIS'],
    'pipelinestatus': ['NEW_APPLICANT', 'INTERVIEWS', 'APPROVED', 'ONBOARDING', 'ACTIVE', 'REJECTED', 'INACTIVE'],
}


def create_enum_if_not_exists(enum_name, enum_values):
    """Create PostgreSQL ENUM type if it doesn't exist"""
    enum_name_escaped = enum_name.replace('"', '""')
    values_str = ", ".join(["'" + v.replace("'", "''") + "'" for v in enum_values])
    op.execute(f"""
        DO $$ BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{enum_name_escaped}') THEN
                CREATE TYPE "{enum_name_escaped}" AS ENUM ({values_str});
            END IF;
        END $$;
    """)


def enum_column_type(enum_name):
    return postgresql.ENUM(*ENUMS[enum_name], name=enum_name, create_type=False)


def upgrade() -> None:
    for enum_name, values in ENUMS.items():
        create_enum_if_not_exists(enum_name, values)

    # Staff
    op.create_table(
        'staff',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True, index=True),
        sa.Column('role', enum_column_type('staffrole'), nullable=False, index=True),
        sa.Column('supervisor_id', sa.String(), sa.ForeignKey('staff.id'), nullable=True, index=True),
        sa.Column('commission', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Dealerships
    op.create_table(
        'dealerships',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Vehicles
    op.create_table(
        'vehicles',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('make', sa.String(), nullable=False),
        sa.Column('model', sa.String(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('status', enum_column_type('vehiclestatus'), nullable=False, index=True),
        sa.Column('sold_by', sa.String(), sa.ForeignKey('staff.id'), nullable=True),
        sa.Column('sold_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Leads
    op.create_table(
        'leads',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=False, index=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('channel', enum_column_type('leadchannel'), nullable=False),
        sa.Column('language', enum_column_type('leadlanguage'), nullable=False),
        sa.Column('stage', enum_column_type('leadstage'), nullable=False, index=True),
        sa.Column('owner_id', sa.String(), sa.ForeignKey('staff.id'), nullable=False, index=True),
        sa.Column('owner_name', sa.String(), nullable=False),
        sa.Column('dealership_id', sa.String(), sa.ForeignKey('dealerships.id'), nullable=False, index=True),
        sa.Column('dealership_name', sa.String(), nullable=False),
        sa.Column('interested_vehicle_id', sa.String(), sa.ForeignKey('vehicles.id'), nullable=True),
        sa.Column('broker_commission', sa.Float(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
        sa.Column('last_activity', sa.DateTime(), nullable=False, index=True),
    )

    # Appointments
    op.create_table(
        'appointments',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('lead_id', sa.String(), sa.ForeignKey('leads.id'), nullable=False, index=True),
        sa.Column('lead_name', sa.String(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False, index=True),
        sa.Column('end_time', sa.DateTime(), nullable=False, index=True),
        sa.Column('owner_id', sa.String(), sa.ForeignKey('staff.id'), nullable=False, index=True),
        sa.Column('stage', enum_column_type('leadstage'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Note history (no FK: entries outlive their lead)
    op.create_table(
        'note_entries',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('lead_id', sa.String(), nullable=False, index=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('author', sa.String(), nullable=False),
        sa.Column('type', enum_column_type('notetype'), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False, index=True),
    )

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False, index=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('author', sa.String(), nullable=False),
        sa.Column('lead_id', sa.String(), nullable=True, index=True),
        sa.Column('lead_name', sa.String(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
    )

    # Candidates
    op.create_table(
        'candidates',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('whatsapp_number', sa.String(), nullable=False),
        sa.Column('pipeline_status', enum_column_type('pipelinestatus'), nullable=False, index=True),
        sa.Column('last_status_change_date', sa.DateTime(), nullable=False, index=True),
        sa.Column('applied_date', sa.DateTime(), nullable=False),
        sa.Column('source', sa.String(), nullable=False),
        sa.Column('recruiter', sa.String(), nullable=True),
        sa.Column('status_reason', sa.String(), nullable=True),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('motivation', sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('candidates')
    op.drop_table('notifications')
    op.drop_table('note_entries')
    op.drop_table('appointments')
    op.drop_table('leads')
    op.drop_table('vehicles')
    op.drop_table('dealerships')
    op.drop_table('staff')
    for enum_name in reversed(list(ENUMS)):
        op.execute(f'DROP TYPE IF EXISTS "{enum_name}"')
