"""track_ended_subscription_and_schedule_release

Revision ID: 8e4f0a6c3d17
Revises: 5c1d9e7a2b40
Create Date: 2026-10-19 14:03:27.551902

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e4f0a6c3d17'
down_revision: Union[str, Sequence[str], None] = '5c1d9e7a2b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column('subscriptions', sa.Column('ended_subscription_id', sa.String(length=255), nullable=True))
    op.add_column('subscriptions', sa.Column('released_schedule_id', sa.String(length=255), nullable=True))
    op.add_column('subscriptions', sa.Column('schedule_released_at', sa.DateTime(timezone=True), nullable=True))
    op.create_index(op.f('ix_subscriptions_ended_subscription_id'), 'subscriptions', ['ended_subscription_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_subscriptions_ended_subscription_id'), table_name='subscriptions')
    op.drop_column('subscriptions', 'schedule_released_at')
    op.drop_column('subscriptions', 'released_schedule_id')
    op.drop_column('subscriptions', 'ended_subscription_id')
