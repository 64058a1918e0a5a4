"""marketplace core: profiles, catalog, listings, demands, contact accesses

Revision ID: 3c9d1e7a5b20
Revises:
Create Date: 2026-10-19 09:12:40.118342

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9d1e7a5b20'
down_revision = None
branch_labels = None
depends_on = None


SIGNATURE_COLUMNS = ['brand_id', 'model_id', 'year_id', 'item_type_id', 'part_id']


def _signature_columns():
    return [
        sa.Column('brand_id', sa.String(length=36), sa.ForeignKey('brands.id'), nullable=False),
        sa.Column('model_id', sa.String(length=36), sa.ForeignKey('vehicle_models.id'), nullable=False),
        sa.Column('year_id', sa.String(length=36), sa.ForeignKey('model_years.id'), nullable=False),
        sa.Column('item_type_id', sa.String(length=36), sa.ForeignKey('item_types.id'), nullable=False),
        sa.Column('part_id', sa.String(length=36), sa.ForeignKey('parts.id'), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())

    if 'profiles' not in tables:
        op.create_table(
            'profiles',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('role', sa.String(length=16), nullable=False, server_default='buyer'),
            sa.Column('tokens', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_blocked', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('whatsapp_e164', sa.String(length=20), nullable=True),
            sa.Column('whatsapp_verified_at', sa.DateTime(), nullable=True),
            sa.Column('whatsapp_verify_code_hash', sa.String(length=255), nullable=True),
            sa.Column('whatsapp_verify_expires_at', sa.DateTime(), nullable=True),
            sa.Column('whatsapp_verify_sent_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('whatsapp_e164', name='uq_profiles_whatsapp_e164'),
        )

    if 'brands' not in tables:
        op.create_table(
            'brands',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('label_es', sa.String(length=120), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        )
    if 'vehicle_models' not in tables:
        op.create_table(
            'vehicle_models',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('brand_id', sa.String(length=36), sa.ForeignKey('brands.id'), nullable=False),
            sa.Column('label_es', sa.String(length=120), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        )
        op.create_index('ix_vehicle_models_brand_id', 'vehicle_models', ['brand_id'])
    if 'model_years' not in tables:
        op.create_table(
            'model_years',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('year', sa.Integer(), nullable=False, unique=True),
        )
    if 'item_types' not in tables:
        op.create_table(
            'item_types',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('label_es', sa.String(length=120), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        )
    if 'parts' not in tables:
        op.create_table(
            'parts',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('item_type_id', sa.String(length=36), sa.ForeignKey('item_types.id'), nullable=False),
            sa.Column('label_es', sa.String(length=120), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        )
        op.create_index('ix_parts_item_type_id', 'parts', ['item_type_id'])

    if 'listings' not in tables:
        op.create_table(
            'listings',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
            sa.Column('seller_profile_id', sa.String(length=36), sa.ForeignKey('profiles.id'), nullable=False),
            *_signature_columns(),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_listings_status', 'listings', ['status'])
        op.create_index('ix_listings_seller_profile_id', 'listings', ['seller_profile_id'])
        op.create_index('ix_listings_created_at', 'listings', ['created_at'])
        op.create_index('ix_listings_signature_status', 'listings', SIGNATURE_COLUMNS + ['status'])
        op.create_index(
            'uq_listings_active_seller_signature',
            'listings',
            ['seller_profile_id'] + SIGNATURE_COLUMNS,
            unique=True,
            postgresql_where=sa.text("status = 'active'"),
            sqlite_where=sa.text("status = 'active'"),
        )
    if 'listing_pricing' not in tables:
        op.create_table(
            'listing_pricing',
            sa.Column('listing_id', sa.String(length=36), sa.ForeignKey('listings.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('price_amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('price_type', sa.String(length=16), nullable=False, server_default='fixed'),
            sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        )
    if 'listing_locations' not in tables:
        op.create_table(
            'listing_locations',
            sa.Column('listing_id', sa.String(length=36), sa.ForeignKey('listings.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('department', sa.String(length=80), nullable=False),
            sa.Column('municipality', sa.String(length=80), nullable=False),
        )

    if 'demands' not in tables:
        op.create_table(
            'demands',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('requester_user_id', sa.String(length=36), sa.ForeignKey('profiles.id'), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
            *_signature_columns(),
            sa.Column('details_text', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.CheckConstraint("status IN ('open', 'closed')", name='ck_demands_status'),
        )
        op.create_index('ix_demands_requester_user_id', 'demands', ['requester_user_id'])
        op.create_index('ix_demands_status_created_at', 'demands', ['status', 'created_at'])
        op.create_index(
            'uq_demands_open_signature',
            'demands',
            ['requester_user_id'] + SIGNATURE_COLUMNS,
            unique=True,
            postgresql_where=sa.text("status = 'open'"),
            sqlite_where=sa.text("status = 'open'"),
        )

    if 'contact_accesses' not in tables:
        op.create_table(
            'contact_accesses',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('requester_user_id', sa.String(length=36), sa.ForeignKey('profiles.id'), nullable=False),
            sa.Column('listing_id', sa.String(length=36), sa.ForeignKey('listings.id'), nullable=True),
            sa.Column('demand_id', sa.String(length=36), sa.ForeignKey('demands.id', ondelete='CASCADE'), nullable=True),
            sa.Column('token_cost', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('channel', sa.String(length=16), nullable=False, server_default='whatsapp'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('requester_user_id', 'listing_id', name='uq_contact_accesses_requester_listing'),
            sa.UniqueConstraint('requester_user_id', 'demand_id', name='uq_contact_accesses_requester_demand'),
            sa.CheckConstraint('(listing_id IS NULL) <> (demand_id IS NULL)', name='ck_contact_accesses_single_target'),
        )
        op.create_index('ix_contact_accesses_requester_user_id', 'contact_accesses', ['requester_user_id'])
        op.create_index('ix_contact_accesses_listing_id', 'contact_accesses', ['listing_id'])
        op.create_index('ix_contact_accesses_demand_id', 'contact_accesses', ['demand_id'])


def downgrade():
    op.drop_table('contact_accesses')
    op.drop_index('uq_demands_open_signature', table_name='demands')
    op.drop_table('demands')
    op.drop_table('listing_locations')
    op.drop_table('listing_pricing')
    op.drop_index('uq_listings_active_seller_signature', table_name='listings')
    op.drop_table('listings')
    op.drop_table('parts')
    op.drop_table('item_types')
    op.drop_table('model_years')
    op.drop_table('vehicle_models')
    op.drop_table('brands')
    op.drop_table('profiles')
