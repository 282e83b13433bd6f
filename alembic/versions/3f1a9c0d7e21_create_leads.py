"""Create leads table with LightFusion sync and 3D binding columns

Revision ID: 3f1a9c0d7e21
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c0d7e21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('leads',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('state', sa.Integer(), nullable=False),
        sa.Column('source', sa.Integer(), nullable=False),
        sa.Column('promo_code', sa.Text(), nullable=True),
        sa.Column('is_2d', sa.Boolean(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('kwh_usage', sa.Float(), nullable=True),
        sa.Column('system_size', sa.Float(), nullable=True),
        sa.Column('panel_count', sa.Integer(), nullable=True),
        sa.Column('panel_id', sa.Integer(), nullable=True),
        sa.Column('inverter_id', sa.Integer(), nullable=True),
        sa.Column('utility_id', sa.Integer(), nullable=True),
        sa.Column('roof_material', sa.Text(), nullable=True),
        sa.Column('annual_production', sa.Float(), nullable=True),
        sa.Column('installation_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('external_lead_id', sa.Integer(), nullable=True),
        sa.Column('sync_status', sa.Text(), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('project_3d_id', sa.Integer(), nullable=True),
        sa.Column('house_3d_id', sa.Integer(), nullable=True),
        sa.Column('model_3d_status', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leads_company_id', 'leads', ['company_id'])
    op.create_index('ix_leads_creator_id', 'leads', ['creator_id'])
    op.create_index('ix_leads_state', 'leads', ['state'])
    op.create_index('ix_leads_external_lead_id', 'leads', ['external_lead_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_leads_external_lead_id', table_name='leads')
    op.drop_index('ix_leads_state', table_name='leads')
    op.drop_index('ix_leads_creator_id', table_name='leads')
    op.drop_index('ix_leads_company_id', table_name='leads')
    op.drop_table('leads')
