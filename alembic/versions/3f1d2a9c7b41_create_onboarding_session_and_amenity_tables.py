"""create_onboarding_session_and_amenity_tables

Revision ID: 3f1d2a9c7b41
Revises:
Create Date: 2026-10-16 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1d2a9c7b41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


session_status = sa.Enum('ACTIVE', 'COMPLETED', 'ABANDONED', name='sessionstatus')
amenity_category = sa.Enum(
    'PROPERTY_WIDE', 'ROOM_SPECIFIC', 'BUSINESS', 'WELLNESS',
    'DINING', 'SUSTAINABILITY', 'RECREATIONAL', 'CONNECTIVITY',
    name='amenitycategory',
)


def upgrade() -> None:
    """Create onboarding session and amenity catalog tables."""
    op.create_table(
        'onboarding_session',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('hotel_id', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('status', session_status, nullable=False),
        sa.Column('draft', sa.JSON(), nullable=False),
        sa.Column('completed_steps', sa.JSON(), nullable=False),
        sa.Column('quality_score', sa.Float(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False),
    )
    op.create_index('ix_onboarding_session_hotel_id', 'onboarding_session', ['hotel_id'])
    op.create_index('ix_onboarding_session_owner_id', 'onboarding_session', ['owner_id'])
    op.create_index('ix_onboarding_session_status', 'onboarding_session', ['status'])
    op.create_index('ix_onboarding_session_expires_at', 'onboarding_session', ['expires_at'])

    op.create_table(
        'amenity_definition',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('category', amenity_category, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(), nullable=True),
        sa.Column('is_eco_friendly', sa.Boolean(), nullable=False),
        sa.Column('applicable_property_types', sa.JSON(), nullable=False),
        sa.Column('business_rules', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False),
    )
    op.create_index('ix_amenity_definition_category', 'amenity_definition', ['category'])


def downgrade() -> None:
    """Drop onboarding session and amenity catalog tables."""
    op.drop_index('ix_amenity_definition_category', table_name='amenity_definition')
    op.drop_table('amenity_definition')
    op.drop_index('ix_onboarding_session_expires_at', table_name='onboarding_session')
    op.drop_index('ix_onboarding_session_status', table_name='onboarding_session')
    op.drop_index('ix_onboarding_session_owner_id', table_name='onboarding_session')
    op.drop_index('ix_onboarding_session_hotel_id', table_name='onboarding_session')
    op.drop_table('onboarding_session')
    session_status.drop(op.get_bind(), checkfirst=True)
    amenity_category.drop(op.get_bind(), checkfirst=True)
