"""Initial storefront schema: products, orders, order items, custom orders.

Orders at launch had no display order id numbering, no order type and no
card details; those arrive in 002.

Revision ID: 001_initial
Revises:
Create Date: 2025-03-02

"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ### Products table ###
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), index=True),
        sa.Column('description', sa.Text()),
        sa.Column('price_cents', sa.Integer()),
        sa.Column('image_url', sa.Text()),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('is_one_off', sa.Boolean(), server_default=sa.true()),
        sa.Column('is_sold', sa.Boolean(), server_default=sa.false()),
        sa.Column('quantity_available', sa.Integer(), nullable=True),
        sa.Column('stripe_price_id', sa.String(255)),
        sa.Column('stripe_product_id', sa.String(255), index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ### Orders table ###
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('display_order_id', sa.String(32), nullable=True),
        sa.Column('stripe_payment_intent_id', sa.String(255), nullable=True),
        sa.Column('total_cents', sa.Integer()),
        sa.Column('shipping_cents', sa.Integer(), server_default='0'),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('shipping_name', sa.String(255)),
        sa.Column('shipping_address_json', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    # ### Order items table ###
    op.create_table(
        'order_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_id', sa.String(36),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'),
                  nullable=False, index=True),
        sa.Column('product_id', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
    )

    # ### Custom orders table ###
    op.create_table(
        'custom_orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('display_custom_order_id', sa.String(32), unique=True),
        sa.Column('customer_name', sa.String(255)),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('image_url', sa.Text()),
        sa.Column('amount', sa.Integer()),
        sa.Column('message_id', sa.String(36)),
        sa.Column('status', sa.String(20), server_default='pending'),
        sa.Column('payment_link', sa.Text()),
        sa.Column('stripe_session_id', sa.String(255)),
        sa.Column('stripe_payment_intent_id', sa.String(255)),
        sa.Column('paid_at', sa.DateTime(timezone=True)),
        sa.Column('shipping_name', sa.String(255)),
        sa.Column('shipping_line1', sa.String(255)),
        sa.Column('shipping_line2', sa.String(255)),
        sa.Column('shipping_city', sa.String(255)),
        sa.Column('shipping_state', sa.String(255)),
        sa.Column('shipping_postal_code', sa.String(32)),
        sa.Column('shipping_country', sa.String(2)),
        sa.Column('shipping_phone', sa.String(64)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('custom_orders')
    op.drop_table('order_items')
    op.drop_index('ix_orders_created_at', table_name='orders')
    op.drop_table('orders')
    op.drop_table('products')
