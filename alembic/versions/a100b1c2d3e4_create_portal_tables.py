"""Create portal tables: users, sessions, allowlist, catalog, orders

Revision ID: a100b1c2d3e4
Revises:
Create Date: 2026-09-02

Products are matched case-insensitively through product_no_key (the
upper-cased product number). Attachments, gallery images and relations
carry the natural keys the bulk import upserts on.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers
revision: str = 'a100b1c2d3e4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(table_name):
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    # ── users / sessions / allowlist ──
    if not _has_table('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('email', sa.String(), nullable=False, unique=True, index=True),
            sa.Column('password_hash', sa.String(), nullable=False),
            sa.Column('display_name', sa.String(), nullable=True),
            sa.Column('is_active', sa.Boolean(), server_default='1'),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.Column('last_login', sa.DateTime(), nullable=True),
        )

    if not _has_table('user_sessions'):
        op.create_table(
            'user_sessions',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('token', sa.String(64), nullable=False, unique=True, index=True),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )

    if not _has_table('allowed_emails'):
        op.create_table(
            'allowed_emails',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('email', sa.String(), nullable=False, unique=True, index=True),
            sa.Column('display_name', sa.String(), nullable=True),
            sa.Column('role', sa.String(), nullable=False, server_default='customer'),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        )

    # ── catalog ──
    if not _has_table('products'):
        op.create_table(
            'products',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('product_no', sa.String(), nullable=False),
            sa.Column('product_no_key', sa.String(), nullable=False, unique=True, index=True),
            sa.Column('name', sa.String(), nullable=True, index=True),
            sa.Column('list_price', sa.Float(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('thumb_path', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        )

    if not _has_table('product_files'):
        op.create_table(
            'product_files',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('product_id', sa.Integer(),
                      sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('relative_path', sa.String(), nullable=False),
            sa.Column('file_type', sa.String(), nullable=False),
            sa.Column('title', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.UniqueConstraint('product_id', 'relative_path', name='uq_product_files_product_path'),
        )

    if not _has_table('product_images'):
        op.create_table(
            'product_images',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('product_id', sa.Integer(),
                      sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('storage_bucket', sa.String(), nullable=False),
            sa.Column('storage_path', sa.String(), nullable=False),
            sa.Column('caption', sa.String(), nullable=True),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.UniqueConstraint('product_id', 'storage_path', name='uq_product_images_product_path'),
        )

    if not _has_table('product_relations'):
        op.create_table(
            'product_relations',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('product_id', sa.Integer(),
                      sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('related_product_id', sa.Integer(),
                      sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('relation_type', sa.String(), nullable=False),
            sa.Column('sort_order', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
            sa.UniqueConstraint(
                'product_id', 'related_product_id', 'relation_type',
                name='uq_product_relations_pair_type',
            ),
            sa.CheckConstraint('product_id <> related_product_id', name='ck_product_relations_not_self'),
        )

    # ── orders ──
    if not _has_table('orders'):
        op.create_table(
            'orders',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, index=True),
            sa.Column('status', sa.String(), nullable=False, server_default='SUBMITTED', index=True),
            sa.Column('project_name', sa.String(), nullable=False),
            sa.Column('project_no', sa.String(), nullable=True),
            sa.Column('contact_name', sa.String(), nullable=False),
            sa.Column('contact_phone', sa.String(), nullable=True),
            sa.Column('contact_email', sa.String(), nullable=True),
            sa.Column('delivery_address', sa.String(), nullable=False),
            sa.Column('delivery_postcode', sa.String(), nullable=True),
            sa.Column('delivery_city', sa.String(), nullable=True),
            sa.Column('comment', sa.Text(), nullable=True),
            sa.Column('expected_delivery_date', sa.String(), nullable=True),
            sa.Column('delivery_info', sa.Text(), nullable=True),
            sa.Column('confirmation_file_path', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), index=True),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.Column('updated_by_name', sa.String(), nullable=True),
        )

    if not _has_table('order_items'):
        op.create_table(
            'order_items',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False, index=True),
            sa.Column('product_id', sa.Integer(),
                      sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
            sa.Column('product_no', sa.String(), nullable=False),
            sa.Column('name', sa.String(), nullable=True),
            sa.Column('unit_price', sa.Float(), nullable=True),
            sa.Column('qty', sa.Integer(), nullable=False),
        )


def downgrade() -> None:
    for table_name in (
        'order_items',
        'orders',
        'product_relations',
        'product_images',
        'product_files',
        'products',
        'allowed_emails',
        'user_sessions',
        'users',
    ):
        if _has_table(table_name):
            op.drop_table(table_name)
