"""Baseline migration - tenancy, assignments, availability, appointments

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates every table the practice API reads and writes.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables."""

    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Practices & Users
    # ==========================================================================
    op.execute('''
        CREATE TABLE practices (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            slug VARCHAR(100) UNIQUE NOT NULL,
            timezone VARCHAR(50) NOT NULL DEFAULT 'UTC',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255) UNIQUE NOT NULL,
            display_name VARCHAR(255) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            token_version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE memberships (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            practice_id UUID NOT NULL REFERENCES practices(id) ON DELETE CASCADE,
            role VARCHAR(20) NOT NULL DEFAULT 'staff',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_membership_user UNIQUE (user_id)
        )
    ''')
    op.execute('CREATE INDEX idx_memberships_practice_role ON memberships(practice_id, role)')

    op.execute('''
        CREATE TABLE role_permissions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            practice_id UUID NOT NULL REFERENCES practices(id) ON DELETE CASCADE,
            role VARCHAR(20) NOT NULL,
            permission VARCHAR(100) NOT NULL,
            is_granted BOOLEAN NOT NULL DEFAULT true,
            updated_by UUID REFERENCES users(id) ON DELETE SET NULL,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_role_permission UNIQUE (practice_id, role, permission)
        )
    ''')
    op.execute('CREATE INDEX idx_role_permissions_practice_role ON role_permissions(practice_id, role)')

    op.execute('''
        CREATE TABLE clients (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            practice_id UUID NOT NULL REFERENCES practices(id) ON DELETE CASCADE,
            full_name VARCHAR(255) NOT NULL,
            email VARCHAR(255),
            phone VARCHAR(50),
            is_archived BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_clients_practice ON clients(practice_id)')

    # ==========================================================================
    # Assignments
    # ==========================================================================
    op.execute('''
        CREATE TABLE practitioner_assignments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            assistant_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            practitioner_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            practice_id UUID NOT NULL REFERENCES practices(id) ON DELETE CASCADE,
            created_by UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_assignment_pair UNIQUE (assistant_id, practitioner_id)
        )
    ''')
    op.execute('CREATE INDEX idx_assignments_assistant ON practitioner_assignments(assistant_id)')
    op.execute('CREATE INDEX idx_assignments_practitioner ON practitioner_assignments(practitioner_id)')
    op.execute('CREATE INDEX idx_assignments_practice ON practitioner_assignments(practice_id)')

    # ==========================================================================
    # Availability
    # ==========================================================================
    op.execute('''
        CREATE TABLE practitioner_availability (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            practice_id UUID NOT NULL REFERENCES practices(id) ON DELETE CASCADE,
            practitioner_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            day_of_week INTEGER NOT NULL,
            appointment_type VARCHAR(50) NOT NULL,
            start_time TIME NOT NULL,
            end_time TIME NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_availability_practitioner_day_type
                UNIQUE (practitioner_id, day_of_week, appointment_type),
            CONSTRAINT ck_valid_day_of_week CHECK (day_of_week >= 0 AND day_of_week <= 6),
            CONSTRAINT ck_availability_time_order CHECK (end_time > start_time)
        )
    ''')
    op.execute('CREATE INDEX idx_availability_practitioner ON practitioner_availability(practitioner_id, is_active)')
    op.execute('CREATE INDEX idx_availability_practice ON practitioner_availability(practice_id)')

    op.execute('''
        CREATE TABLE availability_exceptions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            practice_id UUID NOT NULL REFERENCES practices(id) ON DELETE CASCADE,
            practitioner_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            exception_type VARCHAR(20) NOT NULL,
            start_datetime TIMESTAMPTZ NOT NULL,
            end_datetime TIMESTAMPTZ NOT NULL,
            modified_start_time TIME,
            modified_end_time TIME,
            allowed_appointment_types JSONB,
            description TEXT,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_exception_range_order CHECK (end_datetime > start_datetime)
        )
    ''')
    op.execute('CREATE INDEX idx_availability_exceptions_practitioner ON availability_exceptions(practitioner_id, is_active)')
    op.execute('CREATE INDEX idx_availability_exceptions_dates ON availability_exceptions(start_datetime, end_datetime)')
    op.execute('CREATE INDEX idx_availability_exceptions_practice ON availability_exceptions(practice_id)')

    # ==========================================================================
    # Appointments
    # ==========================================================================
    op.execute('''
        CREATE TABLE appointments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            practice_id UUID NOT NULL REFERENCES practices(id) ON DELETE CASCADE,
            client_id UUID NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            practitioner_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            appointment_type VARCHAR(50) NOT NULL,
            start_time TIMESTAMPTZ NOT NULL,
            end_time TIMESTAMPTZ NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'scheduled',
            notes TEXT,
            created_by UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_appointment_time_order CHECK (end_time > start_time)
        )
    ''')
    op.execute('CREATE INDEX idx_appointments_practitioner_start ON appointments(practitioner_id, start_time)')
    op.execute('CREATE INDEX idx_appointments_practice_status ON appointments(practice_id, status)')
    op.execute('CREATE INDEX idx_appointments_client ON appointments(client_id)')


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.execute('DROP TABLE IF EXISTS appointments')
    op.execute('DROP TABLE IF EXISTS availability_exceptions')
    op.execute('DROP TABLE IF EXISTS practitioner_availability')
    op.execute('DROP TABLE IF EXISTS practitioner_assignments')
    op.execute('DROP TABLE IF EXISTS clients')
    op.execute('DROP TABLE IF EXISTS role_permissions')
    op.execute('DROP TABLE IF EXISTS memberships')
    op.execute('DROP TABLE IF EXISTS users')
    op.execute('DROP TABLE IF EXISTS practices')
