"""Initial schema: stores, connections, cost model, cached metrics

Revision ID: 4c1e9a7d2b10
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1e9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('platform', sa.String(length=50), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('timezone_offset', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_stores_user_id', 'stores', ['user_id'])

    op.create_table(
        'shopify_connections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('shop_domain', sa.String(length=255), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('api_version', sa.String(length=20), nullable=False),
        sa.Column('connected_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id')
    )

    op.create_table(
        'facebook_connections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('ad_account_id', sa.String(length=255), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('api_version', sa.String(length=20), nullable=False),
        sa.Column('connected_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_facebook_connections_store_id', 'facebook_connections', ['store_id'])

    op.create_table(
        'cogs_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.String(length=255), nullable=False),
        sa.Column('product_title', sa.Text(), nullable=True),
        sa.Column('cogs_value', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'variant_id', name='uq_cogs_store_variant')
    )
    op.create_index('ix_cogs_config_store_id', 'cogs_config', ['store_id'])

    op.create_table(
        'shipping_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.String(length=255), nullable=False),
        sa.Column('product_title', sa.Text(), nullable=True),
        sa.Column('config_json', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'variant_id', name='uq_shipping_store_variant')
    )
    op.create_index('ix_shipping_config_store_id', 'shipping_config', ['store_id'])

    op.create_table(
        'operational_expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_operational_expenses_store_id', 'operational_expenses', ['store_id'])

    op.create_table(
        'processing_fees_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('percent_fee', sa.Float(), nullable=False),
        sa.Column('fixed_fee', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id')
    )

    op.create_table(
        'cached_metrics',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('cache_key', sa.String(length=64), nullable=False),
        sa.Column('date_from', sa.Date(), nullable=False),
        sa.Column('date_to', sa.Date(), nullable=False),
        sa.Column('metrics_json', sa.Text(), nullable=False),
        sa.Column('last_refreshed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'cache_key', name='uq_cache_store_key')
    )
    op.create_index('ix_cached_metrics_store_id', 'cached_metrics', ['store_id'])
    op.create_index('ix_cached_metrics_created_at', 'cached_metrics', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_cached_metrics_created_at', table_name='cached_metrics')
    op.drop_index('ix_cached_metrics_store_id', table_name='cached_metrics')
    op.drop_table('cached_metrics')
    op.drop_table('processing_fees_config')
    op.drop_index('ix_operational_expenses_store_id', table_name='operational_expenses')
    op.drop_table('operational_expenses')
    op.drop_index('ix_shipping_config_store_id', table_name='shipping_config')
    op.drop_table('shipping_config')
    op.drop_index('ix_cogs_config_store_id', table_name='cogs_config')
    op.drop_table('cogs_config')
    op.drop_index('ix_facebook_connections_store_id', table_name='facebook_connections')
    op.drop_table('facebook_connections')
    op.drop_table('shopify_connections')
    op.drop_index('ix_stores_user_id', table_name='stores')
    op.drop_table('stores')
