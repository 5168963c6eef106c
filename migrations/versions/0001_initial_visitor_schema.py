"""Initial visitor management schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def _principal_columns():
    return [
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(120), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('fcm_token', sa.String(512), nullable=True),
        sa.Column('fcm_tokens', sa.JSON(), nullable=True),
        sa.Column('fcm_updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    op.create_table(
        'residencies',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('service_status', sa.String(5), server_default='ON', nullable=False),
        sa.Column('admin_fcm_token', sa.String(512), nullable=True),
        sa.Column('admin_fcm_tokens', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_residencies'),
    )
    op.create_index('ix_residencies_name', 'residencies', ['name'])

    op.create_table(
        'blocks',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('residency_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['residency_id'], ['residencies.id'],
            name='fk_blocks_residency_id_residencies', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_blocks'),
    )
    op.create_index('ix_blocks_residency_id', 'blocks', ['residency_id'])

    op.create_table(
        'flats',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('residency_id', sa.String(64), nullable=False),
        sa.Column('block_id', sa.String(64), nullable=True),
        sa.Column('number', sa.String(20), nullable=False),
        sa.Column('floor', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['residency_id'], ['residencies.id'],
            name='fk_flats_residency_id_residencies', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['block_id'], ['blocks.id'],
            name='fk_flats_block_id_blocks', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_flats'),
    )
    op.create_index('ix_flats_residency_id', 'flats', ['residency_id'])
    op.create_index('ix_flats_block_id', 'flats', ['block_id'])

    op.create_table(
        'residents',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('residency_id', sa.String(64), nullable=False),
        sa.Column('flat_id', sa.String(64), nullable=True),
        sa.Column('block', sa.String(100), nullable=True),
        sa.Column('flat', sa.String(20), nullable=True),
        *_principal_columns(),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['residency_id'], ['residencies.id'],
            name='fk_residents_residency_id_residencies', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['flat_id'], ['flats.id'],
            name='fk_residents_flat_id_flats', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_residents'),
        sa.UniqueConstraint('residency_id', 'username', name='uq_resident_username'),
    )
    op.create_index('ix_residents_residency_id', 'residents', ['residency_id'])
    op.create_index('ix_residents_flat_id', 'residents', ['flat_id'])
    op.create_index('ix_residents_flat', 'residents', ['flat'])

    op.create_table(
        'guards',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('residency_id', sa.String(64), nullable=False),
        *_principal_columns(),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['residency_id'], ['residencies.id'],
            name='fk_guards_residency_id_residencies', ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_guards'),
        sa.UniqueConstraint('residency_id', 'username', name='uq_guard_username'),
    )
    op.create_index('ix_guards_residency_id', 'guards', ['residency_id'])

    op.create_table(
        'visitor_requests',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('residency_id', sa.String(64), nullable=False),
        sa.Column('flat_id', sa.String(64), nullable=False),
        sa.Column('visitor_name', sa.String(120), nullable=False),
        sa.Column('visitor_phone', sa.String(30), nullable=True),
        sa.Column('purpose', sa.String(255), nullable=True),
        sa.Column('vehicle_number', sa.String(30), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('approval_token', sa.String(64), nullable=False),
        sa.Column(
            'notification_sent', sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        sa.Column('action_by', sa.String(100), nullable=True),
        sa.Column('approved_by', sa.String(100), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', sa.String(100), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('entered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('exited_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['residency_id'], ['residencies.id'],
            name='fk_visitor_requests_residency_id_residencies', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['flat_id'], ['flats.id'], name='fk_visitor_requests_flat_id_flats',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_visitor_requests'),
    )
    op.create_index('ix_visitor_requests_residency_id', 'visitor_requests', ['residency_id'])
    op.create_index('ix_visitor_requests_flat_id', 'visitor_requests', ['flat_id'])
    op.create_index('ix_visitor_requests_status', 'visitor_requests', ['status'])


def downgrade():
    op.drop_table('visitor_requests')
    op.drop_table('guards')
    op.drop_table('residents')
    op.drop_table('flats')
    op.drop_table('blocks')
    op.drop_table('residencies')
