"""Create storefront tables

Revision ID: sf001_create_storefront_tables
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'sf001_create_storefront_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ### 1. 用户与验证码 ###
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'email_verifications',
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_used', sa.Boolean(), nullable=False, server_default='false'),
        sa.PrimaryKeyConstraint('email'),
    )

    # ### 2. 商品与购物车 ###
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('shopify_variant_id', sa.String(length=128), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'carts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cart_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['cart_id'], ['carts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cart_id', 'product_id', name='uq_cart_items_cart_product'),
    )
    op.create_index('ix_cart_items_cart_id', 'cart_items', ['cart_id'])

    # ### 3. 绿界待确认交易 ###
    op.create_table(
        'ecpay_transactions',
        sa.Column('merchant_trade_no', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        sa.Column('order_payload', sa.JSON(), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shopify_order_id', sa.BigInteger(), nullable=True),
        sa.Column('shopify_order_name', sa.String(length=64), nullable=True),
        sa.Column('shopify_order_number', sa.Integer(), nullable=True),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('claim_token', sa.String(length=64), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('merchant_trade_no'),
    )
    op.create_index('ix_ecpay_transactions_user_id', 'ecpay_transactions', ['user_id'])

    # ### 4. Shopify 订单镜像 ###
    op.create_table(
        'shopify_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('shopify_order_id', sa.BigInteger(), nullable=False),
        sa.Column('shopify_order_name', sa.String(length=64), nullable=True),
        sa.Column('shopify_order_number', sa.Integer(), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=True),
        sa.Column('subtotal_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('financial_status', sa.String(length=32), nullable=True),
        sa.Column('fulfillment_status', sa.String(length=32), nullable=True),
        sa.Column('shipping_method', sa.String(length=32), nullable=True),
        sa.Column('merchant_trade_no', sa.String(length=64), nullable=True),
        sa.Column('line_items', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_shopify_orders_user_id', 'shopify_orders', ['user_id'])
    op.create_index('ix_shopify_orders_shopify_order_id', 'shopify_orders', ['shopify_order_id'], unique=True)
    op.create_index('ix_shopify_orders_merchant_trade_no', 'shopify_orders', ['merchant_trade_no'])

    # ### 5. 物流 ###
    op.create_table(
        'logistics_shipments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('merchant_trade_no', sa.String(length=64), nullable=False),
        sa.Column('logistics_id', sa.String(length=64), nullable=False),
        sa.Column('logistics_subtype', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('cvs_payment_no', sa.String(length=64), nullable=True),
        sa.Column('cvs_validation_no', sa.String(length=64), nullable=True),
        sa.Column('rtn_code', sa.String(length=16), nullable=True),
        sa.Column('rtn_msg', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_logistics_shipments_merchant_trade_no', 'logistics_shipments', ['merchant_trade_no'], unique=True)

    op.create_table(
        'logistics_store_selections',
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('store_info', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('token'),
    )


def downgrade() -> None:
    op.drop_table('logistics_store_selections')
    op.drop_index('ix_logistics_shipments_merchant_trade_no', table_name='logistics_shipments')
    op.drop_table('logistics_shipments')
    op.drop_index('ix_shopify_orders_merchant_trade_no', table_name='shopify_orders')
    op.drop_index('ix_shopify_orders_shopify_order_id', table_name='shopify_orders')
    op.drop_index('ix_shopify_orders_user_id', table_name='shopify_orders')
    op.drop_table('shopify_orders')
    op.drop_index('ix_ecpay_transactions_user_id', table_name='ecpay_transactions')
    op.drop_table('ecpay_transactions')
    op.drop_index('ix_cart_items_cart_id', table_name='cart_items')
    op.drop_table('cart_items')
    op.drop_table('carts')
    op.drop_table('products')
    op.drop_table('email_verifications')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
