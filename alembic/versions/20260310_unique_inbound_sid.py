"""unique inbound twilio_sid on sms_messages

Revision ID: 20260310_unique_inbound_sid
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20260310_unique_inbound_sid'
down_revision = '20260301_initial_sms_tables'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        'uq_sms_messages_inbound_sid',
        'sms_messages',
        ['twilio_sid'],
        unique=True,
        postgresql_where=sa.text("direction = 'inbound'"),
        sqlite_where=sa.text("direction = 'inbound'"),
    )


def downgrade() -> None:
    op.drop_index('uq_sms_messages_inbound_sid', table_name='sms_messages')
