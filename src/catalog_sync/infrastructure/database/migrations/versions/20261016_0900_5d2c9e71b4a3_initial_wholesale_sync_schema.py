"""Initial wholesale sync schema

Revision ID: 5d2c9e71b4a3
Revises:
Create Date: 2026-10-16 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5d2c9e71b4a3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create raw_feed_records table
    op.create_table('raw_feed_records',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('wholesaler_name', sa.String(length=20), nullable=False),
    sa.Column('sku', sa.String(length=255), nullable=False),
    sa.Column('brand', sa.String(length=255), nullable=True),
    sa.Column('raw_payload', sa.JSON(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('attempts', sa.Integer(), nullable=False),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('sku'),
    schema='wholesale_sync'
    )
    op.create_index('ix_raw_feed_records_status_id', 'raw_feed_records', ['status', 'id'], unique=False, schema='wholesale_sync')
    op.create_index('ix_raw_feed_records_wholesaler_status', 'raw_feed_records', ['wholesaler_name', 'status'], unique=False, schema='wholesale_sync')

    # Create queue_jobs table
    op.create_table('queue_jobs',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('job_type', sa.String(length=50), nullable=False),
    sa.Column('job_data', sa.JSON(), nullable=False),
    sa.Column('priority', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('attempts', sa.Integer(), nullable=False),
    sa.Column('max_attempts', sa.Integer(), nullable=False),
    sa.Column('scheduled_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.Column('started_at', sa.DateTime(), nullable=True),
    sa.Column('completed_at', sa.DateTime(), nullable=True),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    schema='wholesale_sync'
    )
    op.create_index('ix_queue_jobs_status_scheduled', 'queue_jobs', ['status', 'scheduled_at'], unique=False, schema='wholesale_sync')
    op.create_index('ix_queue_jobs_priority_id', 'queue_jobs', ['priority', 'id'], unique=False, schema='wholesale_sync')

    # Create performance_stats table
    op.create_table('performance_stats',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('job_type', sa.String(length=50), nullable=False),
    sa.Column('batch_size', sa.Integer(), nullable=False),
    sa.Column('processing_time', sa.Float(), nullable=False),
    sa.Column('memory_delta', sa.Integer(), nullable=False),
    sa.Column('success_count', sa.Integer(), nullable=False),
    sa.Column('error_count', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    schema='wholesale_sync'
    )
    op.create_index('ix_performance_stats_type_created', 'performance_stats', ['job_type', 'created_at'], unique=False, schema='wholesale_sync')


def downgrade() -> None:
    op.drop_index('ix_performance_stats_type_created', table_name='performance_stats', schema='wholesale_sync')
    op.drop_table('performance_stats', schema='wholesale_sync')
    op.drop_index('ix_queue_jobs_priority_id', table_name='queue_jobs', schema='wholesale_sync')
    op.drop_index('ix_queue_jobs_status_scheduled', table_name='queue_jobs', schema='wholesale_sync')
    op.drop_table('queue_jobs', schema='wholesale_sync')
    op.drop_index('ix_raw_feed_records_wholesaler_status', table_name='raw_feed_records', schema='wholesale_sync')
    op.drop_index('ix_raw_feed_records_status_id', table_name='raw_feed_records', schema='wholesale_sync')
    op.drop_table('raw_feed_records', schema='wholesale_sync')
