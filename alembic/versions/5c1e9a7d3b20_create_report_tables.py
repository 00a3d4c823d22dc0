"""create_report_tables

Revision ID: 5c1e9a7d3b20
Revises:
Create Date: 2026-10-17 09:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e9a7d3b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'properties',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('address', sa.String(), nullable=False, server_default=''),
        sa.Column('property_type', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'rooms',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('property_id', sa.String(length=36), nullable=True),
        sa.Column('type', sa.String(), nullable=False, server_default='other'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'inspections',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('room_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('report_info', sa.JSON(), nullable=True),
        sa.Column('report_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'inspection_images',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('inspection_id', sa.String(length=36), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=False),
        sa.Column('analysis', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['inspection_id'], ['inspections.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )

    # Listing by property joins through the anchor room
    op.create_index('idx_rooms_property_id', 'rooms', ['property_id'])
    op.create_index('idx_inspections_room_id', 'inspections', ['room_id'])
    op.create_index('idx_inspection_images_inspection_id', 'inspection_images', ['inspection_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_inspection_images_inspection_id', table_name='inspection_images')
    op.drop_index('idx_inspections_room_id', table_name='inspections')
    op.drop_index('idx_rooms_property_id', table_name='rooms')
    op.drop_table('inspection_images')
    op.drop_table('inspections')
    op.drop_table('rooms')
    op.drop_table('properties')
