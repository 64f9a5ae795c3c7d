"""Initial schema: users, study guides, contributors, upvotes, versions

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SEARCH_DOCUMENT = (
    "coalesce(title, '') || ' ' || coalesce(content, '') || ' ' || coalesce(subjects::text, '')"
)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=30), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('profile_picture', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('bio', sa.String(length=500), nullable=True),
        sa.Column('settings', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_id', 'user', ['id'])
    op.create_index('ix_user_username', 'user', ['username'], unique=True)
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'study_guide',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('summary', sa.Text(), nullable=False, server_default=''),
        sa.Column('flashcards', postgresql.JSONB(astext_type=sa.Text()), nullable=False,
                  server_default=sa.text("'[]'::jsonb")),
        sa.Column('keywords', postgresql.JSONB(astext_type=sa.Text()), nullable=False,
                  server_default=sa.text("'[]'::jsonb")),
        sa.Column('subjects', postgresql.JSONB(astext_type=sa.Text()), nullable=False,
                  server_default=sa.text("'[]'::jsonb")),
        sa.Column('custom_subject', sa.String(length=100), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('upvotes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['creator_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_study_guide_id', 'study_guide', ['id'])
    op.create_index('ix_study_guide_creator_id', 'study_guide', ['creator_id'])
    op.create_index('ix_study_guide_created_at', 'study_guide', ['created_at'])
    op.create_index('ix_study_guide_upvotes', 'study_guide', ['upvotes'])
    op.create_index('ix_study_guide_subjects', 'study_guide', ['subjects'], postgresql_using='gin')

    # Full-text index; the expression must match the one the list query searches
    op.execute(
        f"CREATE INDEX ix_study_guide_search ON study_guide "
        f"USING gin (to_tsvector('english', {SEARCH_DOCUMENT}))"
    )

    op.create_table(
        'study_guide_contributor',
        sa.Column('study_guide_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['study_guide_id'], ['study_guide.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('study_guide_id', 'user_id'),
    )
    op.create_index('ix_study_guide_contributor_user_id', 'study_guide_contributor', ['user_id'])

    op.create_table(
        'study_guide_upvote',
        sa.Column('study_guide_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['study_guide_id'], ['study_guide.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('study_guide_id', 'user_id'),
    )
    op.create_index('ix_study_guide_upvote_user_id', 'study_guide_upvote', ['user_id'])

    op.create_table(
        'study_guide_version',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('study_guide_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('updated_by_id', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['study_guide_id'], ['study_guide.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['updated_by_id'], ['user.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_study_guide_version_id', 'study_guide_version', ['id'])
    op.create_index('ix_study_guide_version_study_guide_id', 'study_guide_version', ['study_guide_id'])
    op.create_index('ix_study_guide_version_updated_by_id', 'study_guide_version', ['updated_by_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('study_guide_version')
    op.drop_table('study_guide_upvote')
    op.drop_table('study_guide_contributor')
    op.execute("DROP INDEX IF EXISTS ix_study_guide_search")
    op.drop_table('study_guide')
    op.drop_table('user')
