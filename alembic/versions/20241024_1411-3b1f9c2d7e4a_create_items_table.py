"""create_items_table

Revision ID: 3b1f9c2d7e4a
Revises:
Create Date: 2024-10-24 14:11:40.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1f9c2d7e4a'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False, comment='Display name'),
        sa.Column('created', sa.DateTime(timezone=True), nullable=False, comment='Insert time'),
        sa.Column('modified', sa.DateTime(timezone=True), nullable=True, comment='Last mutation time'),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_items'),
    )
    op.create_index('ix_items_created', 'items', ['created'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_items_created', table_name='items')
    op.drop_table('items')
