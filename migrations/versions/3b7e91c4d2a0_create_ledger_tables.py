"""create ledger tables

Revision ID: 3b7e91c4d2a0
Revises: 
Create Date: 2026-10-19 09:12:44.103521

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3b7e91c4d2a0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    """
    Key-value world state for passports plus the notification outbox.
    """
    op.create_table(
        'ledgerstate',
        sa.Column('key', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('value', sa.LargeBinary(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )
    op.create_table(
        'notificationoutbox',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('topic', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('payload', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        op.f('ix_notificationoutbox_topic'), 'notificationoutbox', ['topic'], unique=False)


def downgrade():
    """
    Drops both tables. Every stored passport is lost.
    """
    op.drop_index(op.f('ix_notificationoutbox_topic'), table_name='notificationoutbox')
    op.drop_table('notificationoutbox')
    op.drop_table('ledgerstate')
