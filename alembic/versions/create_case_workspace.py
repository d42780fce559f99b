"""Create case workspace tables

Revision ID: create_case_workspace
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_case_workspace'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _owned_columns():
    """id / case_id / user_id columns shared by every case-owned table."""
    return [
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('case_id', sa.String(36), sa.ForeignKey('cases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
    ]


def upgrade() -> None:
    """Create users, cases and the searchable case material tables."""

    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=True, unique=True),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'cases',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('state', sa.String(2), nullable=True),
        sa.Column('county', sa.String(100), nullable=True),
        sa.Column('case_type', sa.String(50), nullable=True),
        sa.Column('starting_point', sa.String(30), nullable=True),
        sa.Column('has_children', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_cases_user_id', 'cases', ['user_id'])

    op.create_table(
        'evidence_files',
        *_owned_columns(),
        sa.Column('original_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('extraction_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'evidence_notes',
        *_owned_columns(),
        sa.Column('evidence_file_id', sa.String(36), sa.ForeignKey('evidence_files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('note_title', sa.String(255), nullable=True),
        sa.Column('note_text', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'case_claims',
        *_owned_columns(),
        sa.Column('claim_text', sa.Text, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='suggested'),
        sa.Column('citation_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_case_claims_status', 'case_claims', ['status'])

    op.create_table(
        'timeline_events',
        *_owned_columns(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('event_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'case_communications',
        *_owned_columns(),
        sa.Column('subject', sa.String(255), nullable=True),
        sa.Column('summary', sa.Text, nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'documents',
        *_owned_columns(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('content', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'exhibit_snippets',
        *_owned_columns(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('snippet_text', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'trial_prep_items',
        *_owned_columns(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('summary', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    for table in (
        'evidence_files', 'evidence_notes', 'case_claims', 'timeline_events',
        'case_communications', 'documents', 'exhibit_snippets', 'trial_prep_items',
    ):
        op.create_index(f'ix_{table}_case_id', table, ['case_id'])
        op.create_index(f'ix_{table}_user_id', table, ['user_id'])


def downgrade() -> None:
    """Drop case workspace tables."""
    op.drop_table('trial_prep_items')
    op.drop_table('exhibit_snippets')
    op.drop_table('documents')
    op.drop_table('case_communications')
    op.drop_table('timeline_events')
    op.drop_table('case_claims')
    op.drop_table('evidence_notes')
    op.drop_table('evidence_files')
    op.drop_table('cases')
    op.drop_table('users')
