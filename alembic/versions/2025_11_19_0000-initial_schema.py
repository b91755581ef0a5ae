"""initial schema: profiles, generations, edits

Revision ID: 2025_11_19_0000
Revises:
Create Date: 2025-11-19 04:46:40.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '2025_11_19_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Owner check shared by every row-level security policy
CURRENT_USER = "nullif(current_setting('app.current_user_id', true), '')::uuid"
OWNER_MATCHES = f"user_id = {CURRENT_USER}"
PROFILE_OWNER_MATCHES = f"id = {CURRENT_USER}"


def upgrade() -> None:
    """Create tables, indexes and row-level security policies."""

    # ========================================================================
    # Create profiles table
    # ========================================================================
    op.create_table(
        'profiles',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('credits >= 0', name='ck_profiles_credits_non_negative'),
    )

    # ========================================================================
    # Create generations table
    # ========================================================================
    op.create_table(
        'generations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=False),
        sa.Column('aspect_ratio', sa.Text(), nullable=False, server_default='1:1'),
        sa.Column('style', sa.Text(), nullable=False, server_default='auto'),
        sa.Column('credits_used', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], name='fk_generations_user', ondelete='CASCADE'),
    )

    op.create_index('idx_generations_user_id', 'generations', ['user_id'])
    op.create_index('idx_generations_created_at', 'generations', [sa.text('created_at DESC')])

    # ========================================================================
    # Create edits table
    # ========================================================================
    op.create_table(
        'edits',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('original_image_url', sa.Text(), nullable=False),
        sa.Column('edited_image_url', sa.Text(), nullable=False),
        sa.Column('edit_type', sa.Text(), nullable=False),
        sa.Column('credits_used', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], name='fk_edits_user', ondelete='CASCADE'),
    )

    op.create_index('idx_edits_user_id', 'edits', ['user_id'])
    op.create_index('idx_edits_created_at', 'edits', [sa.text('created_at DESC')])

    # ========================================================================
    # Row-level security
    # ========================================================================
    # FORCE makes the policies apply to the table owner too, which is the
    # role the API connects as.
    op.execute("ALTER TABLE profiles ENABLE ROW LEVEL SECURITY")
    op.execute("ALTER TABLE profiles FORCE ROW LEVEL SECURITY")
    op.execute(
        "CREATE POLICY profiles_owner ON profiles FOR ALL "
        f"USING ({PROFILE_OWNER_MATCHES}) "
        f"WITH CHECK ({PROFILE_OWNER_MATCHES})"
    )

    for table in ('generations', 'edits'):
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")
        op.execute(f"CREATE POLICY {table}_select_own ON {table} FOR SELECT USING ({OWNER_MATCHES})")
        op.execute(f"CREATE POLICY {table}_insert_own ON {table} FOR INSERT WITH CHECK ({OWNER_MATCHES})")


def downgrade() -> None:
    """Drop everything created by upgrade."""
    for table in ('edits', 'generations'):
        op.execute(f"DROP POLICY IF EXISTS {table}_insert_own ON {table}")
        op.execute(f"DROP POLICY IF EXISTS {table}_select_own ON {table}")
    op.execute("DROP POLICY IF EXISTS profiles_owner ON profiles")

    op.drop_index('idx_edits_created_at', table_name='edits')
    op.drop_index('idx_edits_user_id', table_name='edits')
    op.drop_table('edits')

    op.drop_index('idx_generations_created_at', table_name='generations')
    op.drop_index('idx_generations_user_id', table_name='generations')
    op.drop_table('generations')

    op.drop_table('profiles')
