"""engagement_schema

Revision ID: engagement_schema
Revises:
Create Date: 2026-10-01 00:00:00.000000+00:00

"""
from alembic import op
import sqlalchemy as sa
from liftout.database_types import JSON, GUID


revision = 'engagement_schema'
down_revision = None
branch_labels = None
depends_on = None

BLOCKING_SQL = sa.text("status IN ('submitted', 'reviewing', 'interviewing', 'accepted')")


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'teams',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('created_by', GUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'team_members',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('team_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('is_lead', sa.Boolean(), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.Column('left_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_member'),
    )
    op.create_index('idx_team_members_active', 'team_members', ['team_id', 'status'], unique=False)

    op.create_table(
        'companies',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_companies_name'), 'companies', ['name'], unique=False)

    op.create_table(
        'company_users',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('company_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'user_id', name='uq_company_user'),
    )
    op.create_index(op.f('ix_company_users_user_id'), 'company_users', ['user_id'], unique=False)

    op.create_table(
        'opportunities',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('company_id', GUID(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('visibility', sa.String(), nullable=False),
        sa.Column('applications_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_opportunities_company_id'), 'opportunities', ['company_id'], unique=False)

    op.create_table(
        'applications',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('team_id', GUID(), nullable=False),
        sa.Column('opportunity_id', GUID(), nullable=False),
        sa.Column('applied_by', GUID(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('cover_letter', sa.Text(), nullable=True),
        sa.Column('proposed_compensation', sa.Integer(), nullable=True),
        sa.Column('proposed_equity', sa.String(), nullable=True),
        sa.Column('availability_date', sa.DateTime(), nullable=True),
        sa.Column('custom_proposal', sa.Text(), nullable=True),
        sa.Column('team_fit_explanation', sa.Text(), nullable=True),
        sa.Column('questions_for_company', sa.Text(), nullable=True),
        sa.Column('attachments', JSON(), nullable=False),
        sa.Column('interview_details', JSON(), nullable=True),
        sa.Column('interview_feedback', JSON(), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('response_message', sa.Text(), nullable=True),
        sa.Column('recruiter_notes', sa.Text(), nullable=True),
        sa.Column('hiring_manager_notes', sa.Text(), nullable=True),
        sa.Column('applied_at', sa.DateTime(), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('interview_scheduled_at', sa.DateTime(), nullable=True),
        sa.Column('offer_made_at', sa.DateTime(), nullable=True),
        sa.Column('final_decision_at', sa.DateTime(), nullable=True),
        sa.Column('withdrawn_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id']),
        sa.ForeignKeyConstraint(['opportunity_id'], ['opportunities.id']),
        sa.ForeignKeyConstraint(['applied_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_applications_team_id'), 'applications', ['team_id'], unique=False)
    op.create_index(op.f('ix_applications_opportunity_id'), 'applications', ['opportunity_id'], unique=False)
    op.create_index('idx_applications_opportunity_status', 'applications', ['opportunity_id', 'status'], unique=False)
    # One live application per (team, opportunity)
    op.create_index(
        'uq_applications_live_pair',
        'applications',
        ['team_id', 'opportunity_id'],
        unique=True,
        sqlite_where=BLOCKING_SQL,
        postgresql_where=BLOCKING_SQL,
    )

    op.create_table(
        'offers',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('application_id', GUID(), nullable=False),
        sa.Column('compensation', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('equity_offer', sa.String(), nullable=True),
        sa.Column('benefits', JSON(), nullable=False),
        sa.Column('signing_bonus', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('additional_terms', sa.Text(), nullable=True),
        sa.Column('response_deadline', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('response_message', sa.Text(), nullable=True),
        sa.Column('made_by', GUID(), nullable=False),
        sa.Column('responded_by', GUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['made_by'], ['users.id']),
        sa.ForeignKeyConstraint(['responded_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_offers_application_id'), 'offers', ['application_id'], unique=True)

    op.create_table(
        'application_events',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('application_id', GUID(), nullable=False),
        sa.Column('from_status', sa.String(), nullable=True),
        sa.Column('to_status', sa.String(), nullable=False),
        sa.Column('actor_id', GUID(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['application_id'], ['applications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_application_events_timeline', 'application_events', ['application_id', 'created_at'], unique=False)

    op.create_table(
        'expressions_of_interest',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('from_type', sa.String(), nullable=False),
        sa.Column('from_id', GUID(), nullable=False),
        sa.Column('to_type', sa.String(), nullable=False),
        sa.Column('to_id', GUID(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('interest_level', sa.String(), nullable=False),
        sa.Column('specific_role', sa.String(), nullable=True),
        sa.Column('timeline', sa.String(), nullable=True),
        sa.Column('budget_range', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_by', GUID(), nullable=False),
        sa.Column('responded_by', GUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('conversation_id', sa.String(), nullable=True),
        sa.Column('conversation_requested_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.ForeignKeyConstraint(['responded_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_eoi_from', 'expressions_of_interest', ['from_type', 'from_id', 'status'], unique=False)
    op.create_index('idx_eoi_to', 'expressions_of_interest', ['to_type', 'to_id', 'status'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('payload', JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_notifications_inbox', 'notifications', ['user_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_notifications_inbox', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('idx_eoi_to', table_name='expressions_of_interest')
    op.drop_index('idx_eoi_from', table_name='expressions_of_interest')
    op.drop_table('expressions_of_interest')
    op.drop_index('idx_application_events_timeline', table_name='application_events')
    op.drop_table('application_events')
    op.drop_index(op.f('ix_offers_application_id'), table_name='offers')
    op.drop_table('offers')
    op.drop_index('uq_applications_live_pair', table_name='applications')
    op.drop_index('idx_applications_opportunity_status', table_name='applications')
    op.drop_index(op.f('ix_applications_opportunity_id'), table_name='applications')
    op.drop_index(op.f('ix_applications_team_id'), table_name='applications')
    op.drop_table('applications')
    op.drop_index(op.f('ix_opportunities_company_id'), table_name='opportunities')
    op.drop_table('opportunities')
    op.drop_index(op.f('ix_company_users_user_id'), table_name='company_users')
    op.drop_table('company_users')
    op.drop_index(op.f('ix_companies_name'), table_name='companies')
    op.drop_table('companies')
    op.drop_index('idx_team_members_active', table_name='team_members')
    op.drop_table('team_members')
    op.drop_table('teams')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
