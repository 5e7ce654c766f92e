"""create user, topic, event, score and quiz_session tables

Revision ID: 3c9a51d0e7b2
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9a51d0e7b2'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    if 'topic' not in existing_tables:
        op.create_table(
            'topic',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('start_year', sa.Integer(), nullable=True),
            sa.Column('end_year', sa.Integer(), nullable=True),
            sa.Column('description', sa.Text(), nullable=True),
        )

    if 'event' not in existing_tables:
        op.create_table(
            'event',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('topic_id', sa.Integer(), sa.ForeignKey('topic.id'), nullable=False),
            sa.Column('name', sa.String(length=256), nullable=False),
            sa.Column('date', sa.Date(), nullable=False),
        )
        op.create_index('ix_event_topic_id', 'event', ['topic_id'])

    if 'score' not in existing_tables:
        op.create_table(
            'score',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('topic_id', sa.Integer(), sa.ForeignKey('topic.id'), nullable=False),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('points', sa.Integer(), nullable=False),
            sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index('ix_score_topic_id', 'score', ['topic_id'])
        op.create_index('ix_score_user_id', 'score', ['user_id'])

    if 'quiz_session' not in existing_tables:
        op.create_table(
            'quiz_session',
            sa.Column('key', sa.String(length=64), primary_key=True),
            sa.Column('payload', sa.Text(), nullable=False),
            sa.Column('step', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('updated_at', sa.Float(), nullable=False),
        )


def downgrade():
    op.drop_table('quiz_session')
    op.drop_index('ix_score_user_id', table_name='score')
    op.drop_index('ix_score_topic_id', table_name='score')
    op.drop_table('score')
    op.drop_index('ix_event_topic_id', table_name='event')
    op.drop_table('event')
    op.drop_table('topic')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
