"""initial order fulfillment schema

Revision ID: 5c1e9a7d3b20
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1e9a7d3b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('tier', sa.String(length=20), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('stripe_session_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('training_job_id', sa.String(length=255), nullable=True),
        sa.Column('model_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_email', 'orders', ['email'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_orders_stripe_session_id', 'orders', ['stripe_session_id'], unique=True)
    op.create_index('ix_orders_training_job_id', 'orders', ['training_job_id'], unique=True)

    op.create_table(
        'uploaded_photos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('storage_key', sa.String(length=512), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_uploaded_photos_order_id', 'uploaded_photos', ['order_id'])

    op.create_table(
        'generation_jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('style', sa.String(length=50), nullable=False),
        sa.Column('prediction_id', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'style', name='uq_generation_job_style'),
    )
    op.create_index('ix_generation_jobs_order_id', 'generation_jobs', ['order_id'])
    op.create_index('ix_generation_jobs_prediction_id', 'generation_jobs', ['prediction_id'], unique=True)

    op.create_table(
        'generated_headshots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('style', sa.String(length=50), nullable=False),
        sa.Column('image_index', sa.Integer(), nullable=False),
        sa.Column('storage_key', sa.String(length=512), nullable=False),
        sa.Column('storage_url', sa.String(length=1024), nullable=False),
        sa.Column('generation_job_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'style', 'image_index', name='uq_headshot_slot'),
    )
    op.create_index('ix_generated_headshots_order_id', 'generated_headshots', ['order_id'])
    op.create_index('ix_generated_headshots_generation_job_id', 'generated_headshots', ['generation_job_id'])

    op.create_table(
        'temp_uploads',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('temp_upload_id', sa.String(length=255), nullable=False),
        sa.Column('zip_url', sa.String(length=1024), nullable=False),
        sa.Column('photo_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_temp_uploads_temp_upload_id', 'temp_uploads', ['temp_upload_id'], unique=True)

    op.create_table(
        'payment_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stripe_event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=255), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_event_id'),
    )


def downgrade():
    op.drop_table('payment_events')
    op.drop_table('temp_uploads')
    op.drop_table('generated_headshots')
    op.drop_table('generation_jobs')
    op.drop_table('uploaded_photos')
    op.drop_table('orders')
