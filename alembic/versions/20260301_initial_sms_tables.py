"""create sms conversation tables

Revision ID: 20260301_initial_sms_tables
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20260301_initial_sms_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('sms_opt_in', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tracking_followup_time', sa.Time(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('phone', name='uq_profiles_phone'),
    )
    op.create_index('ix_profiles_phone', 'profiles', ['phone'])

    op.create_table(
        'habit_tracking_config',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('habit_name', sa.String(length=200), nullable=False),
        sa.Column('tracking_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('tracking_type', sa.String(length=20), nullable=False, server_default='boolean'),
        sa.Column('metric_unit', sa.String(length=50), nullable=True),
        sa.Column('metric_target', sa.Float(), nullable=True),
        sa.Column('unit_conversions', sa.JSON(), nullable=True),
        sa.UniqueConstraint('user_id', 'habit_name', name='uq_tracking_config_user_habit'),
    )
    op.create_index('ix_habit_tracking_config_user_id', 'habit_tracking_config', ['user_id'])
    op.create_index('ix_habit_tracking_config_tracking_enabled', 'habit_tracking_config', ['tracking_enabled'])

    op.create_table(
        'weekly_habits',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('habit_name', sa.String(length=200), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
    )
    op.create_index('ix_weekly_habits_user_id', 'weekly_habits', ['user_id'])
    op.create_index('ix_weekly_habits_day_of_week', 'weekly_habits', ['day_of_week'])

    op.create_table(
        'habit_tracking_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('habit_name', sa.String(length=200), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=True),
        sa.Column('metric_value', sa.Float(), nullable=True),
        sa.Column('entry_source', sa.String(length=30), nullable=False, server_default='sms'),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('user_id', 'habit_name', 'entry_date', name='uq_tracking_entries_user_habit_date'),
    )
    op.create_index('ix_habit_tracking_entries_user_id', 'habit_tracking_entries', ['user_id'])
    op.create_index('ix_habit_tracking_entries_entry_date', 'habit_tracking_entries', ['entry_date'])

    op.create_table(
        'sms_pending_clarifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('kind', sa.String(length=40), nullable=False),
        sa.Column('context', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_sms_pending_clarifications_user_id', 'sms_pending_clarifications', ['user_id'])
    op.create_index('ix_sms_pending_clarifications_expires_at', 'sms_pending_clarifications', ['expires_at'])

    op.create_table(
        'sms_followup_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('habit_name', sa.String(length=200), nullable=False),
        sa.Column('followup_date', sa.Date(), nullable=False),
        sa.Column('message_sent', sa.String(length=1600), nullable=False),
        sa.Column('sent_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_sms_followup_log_user_id', 'sms_followup_log', ['user_id'])
    op.create_index('ix_sms_followup_log_followup_date', 'sms_followup_log', ['followup_date'])

    op.create_table(
        'sms_backup_sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('step', sa.String(length=40), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_sms_backup_sessions_user_id', 'sms_backup_sessions', ['user_id'])
    op.create_index('ix_sms_backup_sessions_expires_at', 'sms_backup_sessions', ['expires_at'])

    op.create_table(
        'sms_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('direction', sa.String(length=10), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('user_name', sa.String(length=200), nullable=True),
        sa.Column('body', sa.String(length=1600), nullable=False),
        sa.Column('twilio_sid', sa.String(length=64), nullable=True),
        sa.Column('twilio_status', sa.String(length=30), nullable=True),
        sa.Column('sent_by_type', sa.String(length=20), nullable=True),
        sa.Column('error_message', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_sms_messages_direction', 'sms_messages', ['direction'])
    op.create_index('ix_sms_messages_user_id', 'sms_messages', ['user_id'])
    op.create_index('ix_sms_messages_phone', 'sms_messages', ['phone'])


def downgrade() -> None:
    op.drop_table('sms_messages')
    op.drop_table('sms_backup_sessions')
    op.drop_table('sms_followup_log')
    op.drop_table('sms_pending_clarifications')
    op.drop_table('habit_tracking_entries')
    op.drop_table('weekly_habits')
    op.drop_table('habit_tracking_config')
    op.drop_table('profiles')
