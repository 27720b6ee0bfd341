"""Initial schema: users, concepts, phrasings, interactions, user stats

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


memory_state = sa.Enum('NEW', 'LEARNING', 'REVIEW', 'RELEARNING', name='memorystate')
phrasing_type = sa.Enum('MULTIPLE_CHOICE', 'TRUE_FALSE', 'CLOZE', 'SHORT_ANSWER', name='phrasingtype')


def upgrade() -> None:
    # Create user table
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('desired_retention', sa.Float(), nullable=True),
        sa.Column('maximum_interval_days', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_username'), 'user', ['username'], unique=True)
    op.create_index(op.f('ix_user_email'), 'user', ['email'], unique=True)

    # Create concept table
    op.create_table(
        'concept',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('stability', sa.Float(), nullable=False),
        sa.Column('difficulty', sa.Float(), nullable=False),
        sa.Column('state', memory_state, nullable=False),
        sa.Column('reps', sa.Integer(), nullable=False),
        sa.Column('lapses', sa.Integer(), nullable=False),
        sa.Column('streak', sa.Integer(), nullable=False),
        sa.Column('elapsed_days', sa.Float(), nullable=True),
        sa.Column('scheduled_days', sa.Float(), nullable=True),
        sa.Column('last_review_at', sa.DateTime(), nullable=True),
        sa.Column('next_review_at', sa.DateTime(), nullable=False),
        sa.Column('retrievability', sa.Float(), nullable=True),
        sa.Column('phrasing_count', sa.Integer(), nullable=False),
        sa.Column('canonical_phrasing_id', sa.Integer(), nullable=True),
        sa.Column('thin_score', sa.Integer(), nullable=True),
        sa.Column('conflict_score', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_concept_user_next_review', 'concept', ['user_id', 'next_review_at'], unique=False)
    op.create_index('ix_concept_user_created', 'concept', ['user_id', 'created_at'], unique=False)

    # Create phrasing table
    op.create_table(
        'phrasing',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('concept_id', sa.Integer(), nullable=False),
        sa.Column('question', sa.String(), nullable=False),
        sa.Column('phrasing_type', phrasing_type, nullable=False),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('correct_answer', sa.String(), nullable=True),
        sa.Column('explanation', sa.String(), nullable=True),
        sa.Column('attempt_count', sa.Integer(), nullable=False),
        sa.Column('correct_count', sa.Integer(), nullable=False),
        sa.Column('last_attempted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.ForeignKeyConstraint(['concept_id'], ['concept.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_phrasing_user_concept', 'phrasing', ['user_id', 'concept_id'], unique=False)

    # Create interaction table
    op.create_table(
        'interaction',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('concept_id', sa.Integer(), nullable=False),
        sa.Column('phrasing_id', sa.Integer(), nullable=False),
        sa.Column('user_answer', sa.String(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('attempted_at', sa.DateTime(), nullable=False),
        sa.Column('time_spent_ms', sa.Integer(), nullable=True),
        sa.Column('session_id', sa.String(), nullable=True),
        sa.Column('context', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.ForeignKeyConstraint(['concept_id'], ['concept.id'], ),
        sa.ForeignKeyConstraint(['phrasing_id'], ['phrasing.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_interaction_user_attempted', 'interaction', ['user_id', 'attempted_at'], unique=False)
    op.create_index(
        'ix_interaction_user_concept', 'interaction', ['user_id', 'concept_id', 'attempted_at'], unique=False
    )
    op.create_index(
        'ix_interaction_user_phrasing', 'interaction', ['user_id', 'phrasing_id', 'attempted_at'], unique=False
    )

    # Create user_stats table
    op.create_table(
        'user_stats',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('total_cards', sa.Integer(), nullable=False),
        sa.Column('new_count', sa.Integer(), nullable=False),
        sa.Column('learning_count', sa.Integer(), nullable=False),
        sa.Column('mature_count', sa.Integer(), nullable=False),
        sa.Column('due_now_count', sa.Integer(), nullable=False),
        sa.Column('next_review_time', sa.DateTime(), nullable=True),
        sa.Column('last_calculated', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_stats_user_id'), 'user_stats', ['user_id'], unique=True)


def downgrade() -> None:
    op.drop_index(op.f('ix_user_stats_user_id'), table_name='user_stats')
    op.drop_table('user_stats')
    op.drop_index('ix_interaction_user_phrasing', table_name='interaction')
    op.drop_index('ix_interaction_user_concept', table_name='interaction')
    op.drop_index('ix_interaction_user_attempted', table_name='interaction')
    op.drop_table('interaction')
    op.drop_index('ix_phrasing_user_concept', table_name='phrasing')
    op.drop_table('phrasing')
    op.drop_index('ix_concept_user_created', table_name='concept')
    op.drop_index('ix_concept_user_next_review', table_name='concept')
    op.drop_table('concept')
    op.drop_index(op.f('ix_user_email'), table_name='user')
    op.drop_index(op.f('ix_user_username'), table_name='user')
    op.drop_table('user')
    memory_state.drop(op.get_bind(), checkfirst=True)
    phrasing_type.drop(op.get_bind(), checkfirst=True)
