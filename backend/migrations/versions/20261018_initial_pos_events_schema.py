"""initial POS events schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates:
- branches: store locations addressed by external id
- products: catalog keyed on external id (barcode not unique)
- sales / sale_items: receipts and independently cancellable lines
- promo_code_generation_history: one code per sale line
- inventory_history: append-only stock movement ledger
- event_failures: dead letter for deferred writes
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ext_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_branches_ext_id', 'branches', ['ext_id'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ext_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('barcode', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('unit', sa.String(length=50), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='new'),
        sa.Column('sequence_id', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_ext_id', 'products', ['ext_id'], unique=True)
    op.create_index('ix_products_barcode', 'products', ['barcode'])
    op.create_index('ix_products_status', 'products', ['status'])
    op.create_index('ix_products_sequence_id', 'products', ['sequence_id'])

    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('receipt_id', sa.String(length=255), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('cashier_id', sa.String(length=255), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='completed'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_receipt_id', 'sales', ['receipt_id'], unique=True)
    op.create_index('ix_sales_branch_id', 'sales', ['branch_id'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_branch_status', 'sales', ['branch_id', 'status'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.String(length=255), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_cancelled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_sale_product', 'sale_items', ['sale_id', 'product_id'])

    op.create_table(
        'promo_code_generation_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sale_item_id', sa.Integer(), sa.ForeignKey('sale_items.id', ondelete='CASCADE'), nullable=True),
        sa.Column('promo_code', sa.String(length=32), nullable=True),
        sa.Column('amount_spent', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('discount_received', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='generated'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_promo_code_generation_history_sale_id', 'promo_code_generation_history', ['sale_id'])
    op.create_index('ix_promo_code_generation_history_sale_item_id', 'promo_code_generation_history', ['sale_item_id'])
    op.create_index('ix_promo_code_generation_history_status', 'promo_code_generation_history', ['status'])

    op.create_table(
        'inventory_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('previous_quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('new_quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('total_quantity', sa.Numeric(12, 3), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='new'),
        sa.Column('sequence_id', sa.BigInteger(), nullable=True),
        sa.Column('process_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_history_product_id', 'inventory_history', ['product_id'])
    op.create_index('ix_inventory_history_branch_id', 'inventory_history', ['branch_id'])
    op.create_index('ix_inventory_history_product_branch', 'inventory_history', ['product_id', 'branch_id'])
    op.create_index('ix_inventory_history_status', 'inventory_history', ['status'])
    op.create_index('ix_inventory_history_sequence_id', 'inventory_history', ['sequence_id'])
    op.create_index('ix_inventory_history_process_id', 'inventory_history', ['process_id'])

    op.create_table(
        'event_failures',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('process_id', sa.String(length=36), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('sequence_id', sa.BigInteger(), nullable=True),
        sa.Column('error', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='failed'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('replayed_at', sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_event_failures_process_id', 'event_failures', ['process_id'], unique=True)
    op.create_index('ix_event_failures_event_type', 'event_failures', ['event_type'])
    op.create_index('ix_event_failures_status', 'event_failures', ['status'])


def downgrade():
    op.drop_table('event_failures')
    op.drop_table('inventory_history')
    op.drop_table('promo_code_generation_history')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('products')
    op.drop_table('branches')
