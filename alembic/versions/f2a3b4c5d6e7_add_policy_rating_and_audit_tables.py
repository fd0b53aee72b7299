"""Add policy, rating and audit tables

Revision ID: f2a3b4c5d6e7
Revises: e1f2a3b4c5d6
Create Date: 2026-10-05 09:30:00.000000

Versioned policy (weight_sets, severity_levels, threshold_bands), the
engine's outputs (final_ratings, rating_history, rating_discrepancies)
and the hash-chained audit_log.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'f2a3b4c5d6e7'
down_revision: Union[str, None] = 'e1f2a3b4c5d6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Versioned policy
    op.create_table(
        'weight_sets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(60), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('weights', postgresql.JSONB(), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(100), nullable=False, server_default='system'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('deactivated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('name', 'version', name='uq_weight_sets_name_version'),
    )
    op.create_index('ix_weight_sets_name', 'weight_sets', ['name'])

    op.create_table(
        'severity_levels',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('assessment_type', sa.String(40), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('severity_level', sa.Integer(), nullable=False),
        sa.Column('severity_name', sa.String(60), nullable=False),
        sa.Column('score_impact', sa.Numeric(6, 2), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(100), nullable=False, server_default='system'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('assessment_type', 'version', 'severity_level', name='uq_severity_levels_type_version_level'),
        sa.CheckConstraint('severity_level BETWEEN 1 AND 5', name='ck_severity_levels_level'),
        sa.CheckConstraint('score_impact BETWEEN -100 AND 100', name='ck_severity_levels_impact'),
    )
    op.create_index('ix_severity_levels_assessment_type', 'severity_levels', ['assessment_type'])

    op.create_table(
        'threshold_bands',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('scale', sa.String(20), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('rating', sa.String(10), nullable=False),
        sa.Column('min_score', sa.Numeric(6, 2), nullable=False),
        sa.Column('max_score', sa.Numeric(6, 2), nullable=False),
        sa.Column('effective_from', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(100), nullable=False, server_default='system'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('scale', 'version', 'rating', name='uq_threshold_bands_scale_version_rating'),
    )
    op.create_index('ix_threshold_bands_scale', 'threshold_bands', ['scale'])

    # 2. Engine outputs
    op.create_table(
        'final_ratings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('rating_date', sa.Date(), nullable=False),
        sa.Column('scale', sa.String(20), nullable=False),
        sa.Column('calculation_method', sa.String(30), nullable=False),
        sa.Column('final_score', sa.Numeric(6, 2), nullable=True),
        sa.Column('final_rating', sa.String(10), nullable=False),
        sa.Column('pre_gate_rating', sa.String(10), nullable=False),
        sa.Column('overall_confidence', sa.String(10), nullable=False),
        sa.Column('components', postgresql.JSONB(), nullable=False),
        sa.Column('weights', postgresql.JSONB(), nullable=False),
        sa.Column('discrepancy_detected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('discrepancy_level', sa.String(10), nullable=False, server_default='none'),
        sa.Column('discrepancy', postgresql.JSONB(), nullable=False),
        sa.Column('gate_applied', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('gate_reason', sa.String(40), nullable=True),
        sa.Column('gate_trace', postgresql.JSONB(), nullable=False),
        sa.Column('review_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('review_reason', sa.String(100), nullable=True),
        sa.Column('policy_versions', postgresql.JSONB(), nullable=False),
        sa.Column('next_review_date', sa.Date(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('calculated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('row_version', sa.Integer(), nullable=False, server_default='1'),
        sa.UniqueConstraint('organization_id', 'rating_date', name='uq_final_ratings_org_date'),
    )
    op.create_index('ix_final_ratings_organization_id', 'final_ratings', ['organization_id'])
    op.create_index('ix_final_ratings_rating_date', 'final_ratings', ['rating_date'])
    op.create_index('ix_final_ratings_final_rating', 'final_ratings', ['final_rating'])
    op.create_index('ix_final_ratings_expiry_date', 'final_ratings', ['expiry_date'])

    op.create_table(
        'rating_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('final_rating_id', sa.Integer(), sa.ForeignKey('final_ratings.id'), nullable=False),
        sa.Column('rating_date', sa.Date(), nullable=False),
        sa.Column('previous_rating_date', sa.Date(), nullable=True),
        sa.Column('previous_rating', sa.String(10), nullable=True),
        sa.Column('new_rating', sa.String(10), nullable=False),
        sa.Column('previous_score', sa.Numeric(6, 2), nullable=True),
        sa.Column('new_score', sa.Numeric(6, 2), nullable=True),
        sa.Column('score_change', sa.Numeric(6, 2), nullable=True),
        sa.Column('change_type', sa.String(20), nullable=False),
        sa.Column('change_magnitude', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('crossed_boundary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_significant', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('changed_inputs', postgresql.JSONB(), nullable=False),
        sa.Column('days_since_previous', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_rating_history_organization_id', 'rating_history', ['organization_id'])
    op.create_index('ix_rating_history_final_rating_id', 'rating_history', ['final_rating_id'])
    op.create_index('ix_rating_history_rating_date', 'rating_history', ['rating_date'])
    op.create_index('ix_rating_history_created_at', 'rating_history', ['created_at'])

    op.create_table(
        'rating_discrepancies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('final_rating_id', sa.Integer(), sa.ForeignKey('final_ratings.id'), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('left_component', sa.String(30), nullable=False),
        sa.Column('right_component', sa.String(30), nullable=False),
        sa.Column('left_score', sa.Numeric(6, 2), nullable=False),
        sa.Column('right_score', sa.Numeric(6, 2), nullable=False),
        sa.Column('left_rating', sa.String(10), nullable=False),
        sa.Column('right_rating', sa.String(10), nullable=False),
        sa.Column('score_difference', sa.Numeric(6, 2), nullable=False),
        sa.Column('level', sa.String(10), nullable=False),
        sa.Column('requires_review', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('strategy', sa.String(30), nullable=False),
        sa.Column('resolution', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_rating_discrepancies_final_rating_id', 'rating_discrepancies', ['final_rating_id'])
    op.create_index('ix_rating_discrepancies_organization_id', 'rating_discrepancies', ['organization_id'])

    # 3. Audit trail
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.String(36), nullable=False),
        sa.Column('event_type', sa.String(30), nullable=False),
        sa.Column('actor', sa.String(100), nullable=False),
        sa.Column('action', sa.String(500), nullable=False),
        sa.Column('resource_type', sa.String(30), nullable=True),
        sa.Column('resource_id', sa.String(50), nullable=True),
        sa.Column('details', postgresql.JSONB(), nullable=False),
        sa.Column('previous_hash', sa.String(64), nullable=True),
        sa.Column('current_hash', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_audit_log_event_id', 'audit_log', ['event_id'], unique=True)
    op.create_index('ix_audit_log_event_type', 'audit_log', ['event_type'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])


def downgrade() -> None:
    op.drop_table('audit_log')
    op.drop_table('rating_discrepancies')
    op.drop_table('rating_history')
    op.drop_table('final_ratings')
    op.drop_table('threshold_bands')
    op.drop_table('severity_levels')
    op.drop_table('weight_sets')
