"""Account store

Revision ID: 001_account_store
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_account_store'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the account store:
    - users: login identities
    - user_sessions: session cookie tokens
    - magic_link_tokens: hashed single-use login links
    - oauth_states: pending Google OAuth requests
    - event_ownership: which user published which backend event
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('email', sa.String(length=320), nullable=False),
            sa.Column('name', sa.String(length=200), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)

    if 'user_sessions' not in existing_tables:
        op.create_table(
            'user_sessions',
            sa.Column('token', sa.String(length=64), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('token')
        )
        op.create_index('ix_user_sessions_user_id', 'user_sessions', ['user_id'])
        op.create_index('ix_user_sessions_expires_at', 'user_sessions', ['expires_at'])

    if 'magic_link_tokens' not in existing_tables:
        op.create_table(
            'magic_link_tokens',
            sa.Column('token_hash', sa.String(length=64), nullable=False),
            sa.Column('email', sa.String(length=320), nullable=False),
            sa.Column('redirect_to', sa.String(length=500), nullable=True),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('token_hash')
        )
        op.create_index('ix_magic_link_tokens_email', 'magic_link_tokens', ['email'])

    if 'oauth_states' not in existing_tables:
        op.create_table(
            'oauth_states',
            sa.Column('state', sa.String(length=64), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('state')
        )

    if 'event_ownership' not in existing_tables:
        op.create_table(
            'event_ownership',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('event_slug', sa.String(length=255), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('event_slug', name='uq_event_ownership_event_slug')
        )
        op.create_index('ix_event_ownership_user_id', 'event_ownership', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_event_ownership_user_id', table_name='event_ownership')
    op.drop_table('event_ownership')
    op.drop_table('oauth_states')
    op.drop_index('ix_magic_link_tokens_email', table_name='magic_link_tokens')
    op.drop_table('magic_link_tokens')
    op.drop_index('ix_user_sessions_expires_at', table_name='user_sessions')
    op.drop_index('ix_user_sessions_user_id', table_name='user_sessions')
    op.drop_table('user_sessions')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
