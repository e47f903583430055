"""Create categories, filters, filter_options and filter_assignments tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create taxonomy tables."""
    # Categories table
    op.create_table(
        'categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(200), nullable=False, index=True),
        sa.Column('level', sa.Integer(), nullable=False, index=True),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('categories.id'), nullable=True, index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('level BETWEEN 1 AND 3', name='ck_categories_level'),
    )

    # Slug is unique among active categories only
    op.create_index(
        'uq_categories_active_slug',
        'categories',
        ['slug'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    # Filters table
    op.create_table(
        'filters',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('display_name', sa.String(200), nullable=False),
        sa.Column('value_type', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Filter options table
    op.create_table(
        'filter_options',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('filter_id', sa.String(36),
                  sa.ForeignKey('filters.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('value', sa.String(100), nullable=False),
        sa.Column('display_value', sa.String(200), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_unique_constraint(
        'uq_filter_options_filter_value',
        'filter_options',
        ['filter_id', 'value'],
    )

    # Filter assignments table
    op.create_table(
        'filter_assignments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('categories.id'), nullable=False, index=True),
        sa.Column('filter_id', sa.String(36), sa.ForeignKey('filters.id'), nullable=False, index=True),
        sa.Column('category_level', sa.Integer(), nullable=False),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('assigned_by', sa.String(100), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )

    # One record per (category, filter) pair; reactivation reuses it
    op.create_unique_constraint(
        'uq_filter_assignments_category_filter',
        'filter_assignments',
        ['category_id', 'filter_id'],
    )

    op.create_index(
        'ix_filter_assignments_level_active',
        'filter_assignments',
        ['category_level', 'is_active'],
    )


def downgrade() -> None:
    """Drop taxonomy tables."""
    op.drop_table('filter_assignments')
    op.drop_table('filter_options')
    op.drop_table('filters')
    op.drop_index('uq_categories_active_slug', table_name='categories')
    op.drop_table('categories')
