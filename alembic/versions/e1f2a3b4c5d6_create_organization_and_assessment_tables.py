"""Create organization and assessment tables

Revision ID: e1f2a3b4c5d6
Revises:
Create Date: 2026-10-05 09:00:00.000000

Upstream-owned records the rating engine reads: organizations, structured
compliance assessments, expert judgments with assessor reputation,
agreement records, categorical 4-point assessments, integrity findings.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'e1f2a3b4c5d6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('abn', sa.String(20), nullable=True),
        sa.Column('role_category', sa.String(20), nullable=False, server_default='unknown'),
        sa.Column('employer_type', sa.String(50), nullable=True),
        sa.Column('enterprise_agreement_status', sa.String(30), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('email', sa.String(200), nullable=True),
        sa.Column('website', sa.String(200), nullable=True),
        sa.Column('address', sa.String(300), nullable=True),
        sa.Column('suburb', sa.String(100), nullable=True),
        sa.Column('state', sa.String(10), nullable=True),
        sa.Column('postcode', sa.String(10), nullable=True),
        sa.Column('estimated_worker_count', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_organizations_name', 'organizations', ['name'])
    op.create_index('ix_organizations_abn', 'organizations', ['abn'])

    op.create_table(
        'compliance_assessments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('assessment_type', sa.String(40), nullable=False),
        sa.Column('score', sa.Numeric(6, 2), nullable=True),
        sa.Column('severity_level', sa.Integer(), nullable=True),
        sa.Column('confidence_level', sa.String(10), nullable=False, server_default='medium'),
        sa.Column('assessment_date', sa.Date(), nullable=False),
        sa.Column('assessed_by', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('severity_level BETWEEN 1 AND 5', name='ck_compliance_severity_level'),
        sa.CheckConstraint('score BETWEEN 0 AND 100', name='ck_compliance_score'),
    )
    op.create_index('ix_compliance_assessments_organization_id', 'compliance_assessments', ['organization_id'])
    op.create_index('ix_compliance_assessments_project_id', 'compliance_assessments', ['project_id'])
    op.create_index('ix_compliance_assessments_assessment_date', 'compliance_assessments', ['assessment_date'])

    op.create_table(
        'expert_assessments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('assessor_id', sa.String(100), nullable=True),
        sa.Column('overall_score', sa.Numeric(6, 2), nullable=False),
        sa.Column('overall_score_4point', sa.Numeric(4, 2), nullable=True),
        sa.Column('confidence_level', sa.String(10), nullable=False, server_default='medium'),
        sa.Column('assessment_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('overall_score BETWEEN 0 AND 100', name='ck_expert_overall_score'),
        sa.CheckConstraint('overall_score_4point BETWEEN 1 AND 4', name='ck_expert_overall_score_4point'),
    )
    op.create_index('ix_expert_assessments_organization_id', 'expert_assessments', ['organization_id'])
    op.create_index('ix_expert_assessments_assessor_id', 'expert_assessments', ['assessor_id'])
    op.create_index('ix_expert_assessments_assessment_date', 'expert_assessments', ['assessment_date'])

    op.create_table(
        'assessor_reputations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('assessor_id', sa.String(100), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('accuracy_percentage', sa.Numeric(5, 2), nullable=True),
        sa.Column('reputation_score', sa.Numeric(5, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_assessor_reputations_assessor_id', 'assessor_reputations', ['assessor_id'])

    op.create_table(
        'agreement_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('agreement_name', sa.String(200), nullable=True),
        sa.Column('certified_date', sa.Date(), nullable=True),
        sa.Column('lodged_date', sa.Date(), nullable=True),
        sa.Column('signed_date', sa.Date(), nullable=True),
        sa.Column('vote_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_agreement_records_organization_id', 'agreement_records', ['organization_id'])

    op.create_table(
        'categorical_assessments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('kind', sa.String(30), nullable=False),
        sa.Column('criteria', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('overall_value', sa.Numeric(4, 2), nullable=True),
        sa.Column('scale_convention', sa.String(15), nullable=False, server_default='high_is_best'),
        sa.Column('assessment_date', sa.Date(), nullable=False),
        sa.Column('assessment_complete', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('overall_value BETWEEN 1 AND 4', name='ck_categorical_overall_value'),
    )
    op.create_index('ix_categorical_assessments_organization_id', 'categorical_assessments', ['organization_id'])
    op.create_index('ix_categorical_assessments_project_id', 'categorical_assessments', ['project_id'])
    op.create_index('ix_categorical_assessments_assessment_date', 'categorical_assessments', ['assessment_date'])

    op.create_table(
        'integrity_findings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('finding_type', sa.String(40), nullable=False, server_default='sham_contracting'),
        sa.Column('detected_date', sa.Date(), nullable=False),
        sa.Column('cleared_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_integrity_findings_organization_id', 'integrity_findings', ['organization_id'])


def downgrade() -> None:
    op.drop_table('integrity_findings')
    op.drop_table('categorical_assessments')
    op.drop_table('agreement_records')
    op.drop_table('assessor_reputations')
    op.drop_table('expert_assessments')
    op.drop_table('compliance_assessments')
    op.drop_table('organizations')
