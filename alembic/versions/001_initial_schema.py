"""Initial schema - Outcome Planner

Revision ID: 001
Revises:
Create Date: 2026-10-18

Inbox, chunks, saga de conversión, preferencias y las tablas de
outcomes/actions que la conversión escribe.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # chunks
    op.create_table(
        'chunks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('converted_to_type', sa.String(20), nullable=True),
        sa.Column('converted_to_id', sa.Uuid(), nullable=True),
        sa.Column('converted_at', sa.DateTime(), nullable=True),
        sa.Column('conversion_token', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "(converted_to_id IS NULL AND converted_at IS NULL AND converted_to_type IS NULL)"
            " OR (converted_to_id IS NOT NULL AND converted_at IS NOT NULL"
            " AND converted_to_type IS NOT NULL)",
            name='ck_chunks_conversion_triple',
        ),
    )
    op.create_index('ix_chunks_user_id', 'chunks', ['user_id'])
    op.create_index('ix_chunks_organization_id', 'chunks', ['organization_id'])

    # inbox_items
    op.create_table(
        'inbox_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('item_type', sa.String(20), nullable=False),
        sa.Column('chunk_id', sa.Uuid(), nullable=True),
        sa.Column('triaged', sa.Boolean(), nullable=False),
        sa.Column('triaged_to_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['chunk_id'], ['chunks.id'], ondelete='SET NULL'),
        sa.CheckConstraint(
            'NOT triaged OR triaged_to_id IS NOT NULL',
            name='ck_inbox_items_triaged_target',
        ),
    )
    op.create_index('ix_inbox_items_user_id', 'inbox_items', ['user_id'])
    op.create_index('ix_inbox_items_organization_id', 'inbox_items', ['organization_id'])
    op.create_index('ix_inbox_items_chunk_id', 'inbox_items', ['chunk_id'])

    # chunk_items
    op.create_table(
        'chunk_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('chunk_id', sa.Uuid(), nullable=False),
        sa.Column('inbox_item_id', sa.Uuid(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['chunk_id'], ['chunks.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['inbox_item_id'], ['inbox_items.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('inbox_item_id', name='uq_chunk_items_inbox_item'),
        sa.UniqueConstraint('chunk_id', 'sort_order', name='uq_chunk_items_sort_order'),
    )
    op.create_index('ix_chunk_items_chunk_id', 'chunk_items', ['chunk_id'])

    # chunk_conversions (cursor de la saga)
    op.create_table(
        'chunk_conversions',
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('chunk_id', sa.Uuid(), nullable=False),
        sa.Column('step', sa.String(30), nullable=False),
        sa.Column('request', sa.JSON(), nullable=False),
        sa.Column('outcome_id', sa.Uuid(), nullable=True),
        sa.Column('actions_created', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('token'),
        sa.ForeignKeyConstraint(['chunk_id'], ['chunks.id']),
        sa.UniqueConstraint('chunk_id'),
    )

    # user_preferences
    op.create_table(
        'user_preferences',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('auto_create_actions_from_chunks', sa.Boolean(), nullable=False),
        sa.Column('default_post_conversion_action', sa.String(20), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('user_id', 'organization_id'),
    )

    # outcomes
    op.create_table(
        'outcomes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('purpose', sa.Text(), nullable=False),
        sa.Column('area_id', sa.Uuid(), nullable=True),
        sa.Column('goal_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('source_chunk_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['source_chunk_id'], ['chunks.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('source_chunk_id'),
    )
    op.create_index('ix_outcomes_user_id', 'outcomes', ['user_id'])
    op.create_index('ix_outcomes_organization_id', 'outcomes', ['organization_id'])

    # actions
    op.create_table(
        'actions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('outcome_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('done', sa.Boolean(), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('is_must', sa.Boolean(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('source_chunk_item_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['outcome_id'], ['outcomes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['source_chunk_item_id'], ['chunk_items.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_actions_outcome_id', 'actions', ['outcome_id'])


def downgrade() -> None:
    op.drop_table('actions')
    op.drop_table('outcomes')
    op.drop_table('user_preferences')
    op.drop_table('chunk_conversions')
    op.drop_table('chunk_items')
    op.drop_table('inbox_items')
    op.drop_table('chunks')
