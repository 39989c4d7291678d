"""create catalog, order and cart tables

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('price', sa.Numeric(10,2), nullable=False),
        sa.Column('discount', sa.Numeric(5,2), nullable=False, server_default='0'),
        sa.Column('images', sa.JSON, nullable=False),
        sa.Column('stock', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
    )
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('total_amount', sa.Numeric(12,2), nullable=False),
        sa.Column('payment_status', sa.String(30), nullable=False),
        sa.Column('delivery_status', sa.String(30), nullable=False),
        sa.Column('payment_method', sa.String(50), nullable=False),
        sa.Column('shipping_name', sa.String(200), nullable=False),
        sa.Column('shipping_phone', sa.String(50), nullable=False),
        sa.Column('shipping_street', sa.String(255), nullable=False),
        sa.Column('shipping_city', sa.String(100), nullable=False),
        sa.Column('shipping_state', sa.String(100), nullable=False),
        sa.Column('shipping_zip', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('transaction_id', sa.String(100), nullable=True),
        sa.Column('gateway_order_id', sa.String(100), nullable=True),
        sa.Column('gateway_payment_id', sa.String(100), nullable=True),
        sa.Column('gateway_signature', sa.String(256), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.Column('cancelled_at', sa.DateTime, nullable=True),
    )
    op.create_index('idx_orders_user_created', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_delivery_status', 'orders', ['delivery_status'])
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False),
        # Reference only, no FK: the catalog owns products
        sa.Column('product_id', sa.Integer, nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price', sa.Numeric(10,2), nullable=False),
        sa.Column('discount', sa.Numeric(5,2), nullable=False),
        sa.Column('final_price', sa.Numeric(10,2), nullable=False),
        sa.Column('name', sa.String(200), nullable=True),
        sa.Column('image', sa.String(500), nullable=True),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])
    op.create_table(
        'carts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('items', sa.JSON, nullable=False),
        sa.Column('total_price', sa.Numeric(12,2), nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_carts_user_id', 'carts', ['user_id'], unique=True)

def downgrade():
    op.drop_index('ix_carts_user_id')
    op.drop_table('carts')
    op.drop_index('ix_order_items_product_id')
    op.drop_index('ix_order_items_order_id')
    op.drop_table('order_items')
    op.drop_index('ix_orders_delivery_status')
    op.drop_index('ix_orders_payment_status')
    op.drop_index('idx_orders_user_created')
    op.drop_table('orders')
    op.drop_table('products')
