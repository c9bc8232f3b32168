"""Display order numbering, order type and card details.

Adds the per-year order_counters table and the optional order columns, and
makes the payment intent and display order id unique. Existing orders are
numbered by the application's startup backfill, not here.

Revision ID: 002_order_numbering
Revises: 001_initial
Create Date: 2025-11-18

"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '002_order_numbering'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'order_counters',
        sa.Column('year', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('counter', sa.Integer(), nullable=False),
    )

    with op.batch_alter_table('orders') as batch_op:
        batch_op.add_column(sa.Column('order_type', sa.String(20), nullable=True))
        batch_op.add_column(sa.Column('currency', sa.String(3), nullable=True))
        batch_op.add_column(sa.Column('card_last4', sa.String(4), nullable=True))
        batch_op.add_column(sa.Column('card_brand', sa.String(32), nullable=True))

    op.create_index(
        'ix_orders_stripe_payment_intent_id',
        'orders',
        ['stripe_payment_intent_id'],
        unique=True,
    )
    op.create_index(
        'ix_orders_display_order_id',
        'orders',
        ['display_order_id'],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index('ix_orders_display_order_id', table_name='orders')
    op.drop_index('ix_orders_stripe_payment_intent_id', table_name='orders')

    with op.batch_alter_table('orders') as batch_op:
        batch_op.drop_column('card_brand')
        batch_op.drop_column('card_last4')
        batch_op.drop_column('currency')
        batch_op.drop_column('order_type')

    op.drop_table('order_counters')
