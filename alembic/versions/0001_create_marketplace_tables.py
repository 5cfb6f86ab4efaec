"""create_marketplace_tables

Revision ID: 0001_marketplace
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_marketplace'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


item_type_enum = sa.Enum(
    'ticket', 'product', name='marketplace_item_type_enum'
)
movement_type_enum = sa.Enum(
    'reservation', 'release', name='marketplace_inventory_movement_type_enum'
)
order_status_enum = sa.Enum(
    'pending', 'paid', 'fulfilled', 'cancelled', 'refunded',
    name='marketplace_order_status_enum',
)
payment_status_enum = sa.Enum(
    'pending', 'verified', 'failed', 'refunded',
    name='marketplace_payment_status_enum',
)
loyalty_transaction_type_enum = sa.Enum(
    'accrual', 'redemption', 'redemption_reversal', 'refund_reversal', 'adjustment',
    name='marketplace_loyalty_transaction_type_enum',
)
loyalty_direction_enum = sa.Enum(
    'credit', 'debit', name='marketplace_loyalty_direction_enum'
)
reward_type_enum = sa.Enum(
    'discount', 'product', 'ticket', name='marketplace_reward_type_enum'
)
redemption_status_enum = sa.Enum(
    'pending', 'fulfilled', 'cancelled', name='marketplace_redemption_status_enum'
)

ALL_ENUMS = (
    item_type_enum,
    movement_type_enum,
    order_status_enum,
    payment_status_enum,
    loyalty_transaction_type_enum,
    loyalty_direction_enum,
    reward_type_enum,
    redemption_status_enum,
)


def _sellable_columns() -> list:
    return [
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('quantity_available', sa.Integer(), server_default='0', nullable=False),
        sa.Column('quantity_sold', sa.Integer(), server_default='0', nullable=False),
        sa.Column('limit_per_user', sa.Integer(), nullable=True),
        sa.Column('points_earned_per_unit', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema - Create marketplace tables."""
    bind = op.get_bind()
    for enum in ALL_ENUMS:
        enum.create(bind, checkfirst=True)

    # Enum types already exist; stop create_table from emitting CREATE TYPE again
    def col_enum(enum: sa.Enum) -> sa.types.TypeEngine:
        if bind.dialect.name == "postgresql":
            return postgresql.ENUM(*enum.enums, name=enum.name, create_type=False)
        return enum

    # Catalog
    op.create_table(
        'marketplace_tickets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_name', sa.String(length=200), nullable=False),
        sa.Column('ticket_type', sa.String(length=50), nullable=False),
        sa.Column('event_starts_at', sa.DateTime(timezone=True), nullable=True),
        *_sellable_columns(),
        sa.CheckConstraint('quantity_available >= 0', name=op.f('ck_marketplace_tickets_ticket_available_nonneg')),
        sa.CheckConstraint('quantity_sold >= 0', name=op.f('ck_marketplace_tickets_ticket_sold_nonneg')),
        sa.CheckConstraint('price >= 0', name=op.f('ck_marketplace_tickets_ticket_price_nonneg')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_tickets')),
    )
    op.create_table(
        'marketplace_products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        *_sellable_columns(),
        sa.CheckConstraint('quantity_available >= 0', name=op.f('ck_marketplace_products_product_available_nonneg')),
        sa.CheckConstraint('quantity_sold >= 0', name=op.f('ck_marketplace_products_product_sold_nonneg')),
        sa.CheckConstraint('price >= 0', name=op.f('ck_marketplace_products_product_price_nonneg')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_products')),
        sa.UniqueConstraint('sku', name=op.f('uq_marketplace_products_sku')),
    )

    # Inventory audit trail
    op.create_table(
        'marketplace_inventory_movements',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('item_type', col_enum(item_type_enum), nullable=False),
        sa.Column('item_id', sa.Uuid(), nullable=False),
        sa.Column('movement_type', col_enum(movement_type_enum), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name=op.f('ck_marketplace_inventory_movements_movement_quantity_positive')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_inventory_movements')),
    )
    op.create_index('ix_marketplace_inventory_movements_item', 'marketplace_inventory_movements', ['item_type', 'item_id'])

    # Carts, orders, lines, payments
    op.create_table(
        'marketplace_carts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_carts')),
    )
    op.create_index(op.f('ix_marketplace_carts_user_id'), 'marketplace_carts', ['user_id'], unique=True)

    op.create_table(
        'marketplace_orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=30), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('status', col_enum(order_status_enum), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('total_amount >= 0', name=op.f('ck_marketplace_orders_order_total_nonneg')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_orders')),
    )
    op.create_index(op.f('ix_marketplace_orders_order_number'), 'marketplace_orders', ['order_number'], unique=True)
    op.create_index(op.f('ix_marketplace_orders_user_id'), 'marketplace_orders', ['user_id'])

    op.create_table(
        'marketplace_cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('cart_id', sa.Uuid(), nullable=True),
        sa.Column('order_id', sa.Uuid(), nullable=True),
        sa.Column('item_type', col_enum(item_type_enum), nullable=False),
        sa.Column('item_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name=op.f('ck_marketplace_cart_items_cart_item_quantity_positive')),
        sa.CheckConstraint(
            '(cart_id IS NOT NULL AND order_id IS NULL) OR (cart_id IS NULL AND order_id IS NOT NULL)',
            name=op.f('ck_marketplace_cart_items_cart_item_single_parent'),
        ),
        sa.ForeignKeyConstraint(['cart_id'], ['marketplace_carts.id'], name=op.f('fk_marketplace_cart_items_cart_id_marketplace_carts')),
        sa.ForeignKeyConstraint(['order_id'], ['marketplace_orders.id'], name=op.f('fk_marketplace_cart_items_order_id_marketplace_orders')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_cart_items')),
    )
    op.create_index(op.f('ix_marketplace_cart_items_cart_id'), 'marketplace_cart_items', ['cart_id'])
    op.create_index(op.f('ix_marketplace_cart_items_order_id'), 'marketplace_cart_items', ['order_id'])
    op.create_index('ix_marketplace_cart_items_item', 'marketplace_cart_items', ['item_type', 'item_id'])

    op.create_table(
        'marketplace_payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('method', sa.String(length=50), nullable=False),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('status', col_enum(payment_status_enum), nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['marketplace_orders.id'], name=op.f('fk_marketplace_payments_order_id_marketplace_orders')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_payments')),
        sa.UniqueConstraint('order_id', name=op.f('uq_marketplace_payments_order_id')),
    )

    # Loyalty
    op.create_table(
        'marketplace_loyalty_accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('loyalty_points', sa.Integer(), nullable=False),
        sa.Column('lifetime_points_earned', sa.Integer(), nullable=False),
        sa.Column('lifetime_points_spent', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('loyalty_points >= 0', name=op.f('ck_marketplace_loyalty_accounts_loyalty_points_nonneg')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_loyalty_accounts')),
    )
    op.create_index(op.f('ix_marketplace_loyalty_accounts_user_id'), 'marketplace_loyalty_accounts', ['user_id'], unique=True)

    op.create_table(
        'marketplace_loyalty_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(), nullable=False),
        sa.Column('transaction_type', col_enum(loyalty_transaction_type_enum), nullable=False),
        sa.Column('direction', col_enum(loyalty_direction_enum), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('requested_amount', sa.Integer(), nullable=False),
        sa.Column('balance_before', sa.Integer(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount >= 0', name=op.f('ck_marketplace_loyalty_transactions_loyalty_amount_nonneg')),
        sa.CheckConstraint('requested_amount > 0', name=op.f('ck_marketplace_loyalty_transactions_loyalty_requested_positive')),
        sa.CheckConstraint('balance_after >= 0', name=op.f('ck_marketplace_loyalty_transactions_loyalty_balance_after_nonneg')),
        sa.ForeignKeyConstraint(['account_id'], ['marketplace_loyalty_accounts.id'], name=op.f('fk_marketplace_loyalty_transactions_account_id_marketplace_loyalty_accounts')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_loyalty_transactions')),
    )
    op.create_index(op.f('ix_marketplace_loyalty_transactions_account_id'), 'marketplace_loyalty_transactions', ['account_id'])
    op.create_index(op.f('ix_marketplace_loyalty_transactions_idempotency_key'), 'marketplace_loyalty_transactions', ['idempotency_key'], unique=True)

    # Rewards
    op.create_table(
        'marketplace_rewards',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=False),
        sa.Column('reward_type', col_enum(reward_type_enum), nullable=False),
        sa.Column('discount_percent', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=True),
        sa.Column('ticket_id', sa.Uuid(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('points_required >= 0', name=op.f('ck_marketplace_rewards_reward_points_nonneg')),
        sa.CheckConstraint('discount_percent >= 0 AND discount_percent <= 100', name=op.f('ck_marketplace_rewards_reward_discount_range')),
        sa.CheckConstraint('product_id IS NULL OR ticket_id IS NULL', name=op.f('ck_marketplace_rewards_reward_single_link')),
        sa.ForeignKeyConstraint(['product_id'], ['marketplace_products.id'], name=op.f('fk_marketplace_rewards_product_id_marketplace_products')),
        sa.ForeignKeyConstraint(['ticket_id'], ['marketplace_tickets.id'], name=op.f('fk_marketplace_rewards_ticket_id_marketplace_tickets')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_rewards')),
    )

    op.create_table(
        'marketplace_redemptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('reward_id', sa.Uuid(), nullable=False),
        sa.Column('points_spent', sa.Integer(), nullable=False),
        sa.Column('status', col_enum(redemption_status_enum), nullable=False),
        sa.Column('redeemed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('fulfilled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('points_spent >= 0', name=op.f('ck_marketplace_redemptions_redemption_points_nonneg')),
        sa.ForeignKeyConstraint(['reward_id'], ['marketplace_rewards.id'], name=op.f('fk_marketplace_redemptions_reward_id_marketplace_rewards')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_marketplace_redemptions')),
    )
    op.create_index(op.f('ix_marketplace_redemptions_user_id'), 'marketplace_redemptions', ['user_id'])
    op.create_index(op.f('ix_marketplace_redemptions_reward_id'), 'marketplace_redemptions', ['reward_id'])


def downgrade() -> None:
    """Downgrade schema - Drop marketplace tables."""
    op.drop_table('marketplace_redemptions')
    op.drop_table('marketplace_rewards')
    op.drop_table('marketplace_loyalty_transactions')
    op.drop_table('marketplace_loyalty_accounts')
    op.drop_table('marketplace_payments')
    op.drop_table('marketplace_cart_items')
    op.drop_table('marketplace_orders')
    op.drop_table('marketplace_carts')
    op.drop_table('marketplace_inventory_movements')
    op.drop_table('marketplace_products')
    op.drop_table('marketplace_tickets')

    bind = op.get_bind()
    for enum in reversed(ALL_ENUMS):
        enum.drop(bind, checkfirst=True)
