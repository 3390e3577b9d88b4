"""create albums, photos and order_items tables

Revision ID: 5c1f0e7a9b21
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1f0e7a9b21'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'albums',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('photographer_id', sa.String(length=64), nullable=False),
        sa.Column('album_name', sa.String(length=255), nullable=False),
        sa.Column('price_per_photo_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cover_photo_url', sa.String(length=1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_albums_photographer_id', 'albums', ['photographer_id'])

    op.create_table(
        'photos',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('uploader_id', sa.String(length=64), nullable=True),
        sa.Column('album_id', sa.String(length=64), nullable=True),
        sa.Column('url', sa.String(length=1024), nullable=True),
        sa.Column('url_watermark', sa.String(length=1024), nullable=True),
        sa.Column('url_thumb', sa.String(length=1024), nullable=True),
        sa.Column('size_bytes', sa.Integer(), nullable=True),
        sa.Column('original_name', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='NEW'),
        sa.Column('processing_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['album_id'], ['albums.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_photos_uploader_id', 'photos', ['uploader_id'])
    op.create_index('ix_photos_album_id', 'photos', ['album_id'])
    op.create_index('ix_photos_created_at', 'photos', ['created_at'])
    op.create_index('ix_photos_status_created_at', 'photos', ['status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('photo_id', sa.String(length=64), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['photo_id'], ['photos.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_photo_id', 'order_items', ['photo_id'])


def downgrade():
    op.drop_table('order_items')
    op.drop_table('photos')
    op.drop_table('albums')
