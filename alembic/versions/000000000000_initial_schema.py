"""initial_schema

Revision ID: 000000000000
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JOB_STATUSES = (
    'QUEUED', 'PARSING', 'PROCESSING', 'DEDUPING',
    'CREATING_VIOLATIONS', 'FINALIZING', 'COMPLETE', 'FAILED',
)

json_type = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    # Create jurisdictions table
    op.create_table(
        'jurisdictions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False, comment='Display name'),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('county', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=False, comment='State abbreviation'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', 'state', name='uq_jurisdictions_name_state'),
    )

    # Create upload_jobs table
    status_list = ", ".join(f"'{status}'" for status in JOB_STATUSES)
    op.create_table(
        'upload_jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='Owning user'),
        sa.Column('storage_path', sa.String(length=512), nullable=False, comment='Blob key of the source CSV: {user_id}/{timestamp}-{filename}'),
        sa.Column('filename', sa.String(length=255), nullable=False, comment='Original filename'),
        sa.Column('file_size', sa.Integer(), nullable=False, comment='Bytes'),
        sa.Column('status', sa.String(length=32), nullable=False, comment='Pipeline phase'),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('county', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=2), nullable=True),
        sa.Column('jurisdiction_id', sa.Integer(), nullable=True),
        sa.Column('parent_job_id', sa.Integer(), nullable=True, comment='Set on jobs spawned by a multi-city split'),
        sa.Column('total_rows', sa.Integer(), nullable=True, comment='Data rows in file'),
        sa.Column('processed_rows', sa.Integer(), nullable=False, comment='Rows staged'),
        sa.Column('properties_created', sa.Integer(), nullable=False),
        sa.Column('violations_created', sa.Integer(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('warnings', json_type, nullable=False, comment='Non-fatal row-level problems'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['jurisdiction_id'], ['jurisdictions.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['parent_job_id'], ['upload_jobs.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(f'status IN ({status_list})', name='check_upload_job_status_valid'),
        sa.CheckConstraint('total_rows IS NULL OR processed_rows <= total_rows', name='check_processed_within_total'),
    )
    op.create_index('idx_upload_jobs_status_started', 'upload_jobs', ['status', 'started_at'], unique=False)
    op.create_index('idx_upload_jobs_user_id', 'upload_jobs', ['user_id'], unique=False)
    op.create_index('idx_upload_jobs_parent_job_id', 'upload_jobs', ['parent_job_id'], unique=False)

    # Create properties table (no unique address key: legacy duplicates exist)
    op.create_table(
        'properties',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(length=255), nullable=False, comment='Street address as uploaded'),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('zip', sa.String(length=10), nullable=False),
        sa.Column('county', sa.String(length=100), nullable=True),
        sa.Column('jurisdiction_id', sa.Integer(), nullable=True),
        sa.Column('latitude', sa.Numeric(precision=10, scale=7), nullable=True),
        sa.Column('longitude', sa.Numeric(precision=10, scale=7), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('insight', sa.Text(), nullable=True),
        sa.Column('total_violations', sa.Integer(), nullable=False),
        sa.Column('open_violations', sa.Integer(), nullable=False),
        sa.Column('violation_types', json_type, nullable=False, comment='Sorted distinct violation types'),
        sa.Column('repeat_offender', sa.Boolean(), nullable=False),
        sa.Column('last_enforcement_date', sa.Date(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['jurisdiction_id'], ['jurisdictions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('open_violations <= total_violations', name='check_open_within_total'),
    )
    op.create_index('idx_properties_city_state', 'properties', ['city', 'state'], unique=False)
    op.create_index('idx_properties_address', 'properties', ['address'], unique=False)

    # Create upload_staging table
    op.create_table(
        'upload_staging',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('row_num', sa.Integer(), nullable=False, comment='1-based data row number'),
        sa.Column('case_id', sa.String(length=100), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('zip', sa.String(length=10), nullable=False),
        sa.Column('violation', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('opened_date', sa.String(length=50), nullable=True, comment='Raw text'),
        sa.Column('last_updated', sa.String(length=50), nullable=True, comment='Raw text'),
        sa.Column('property_id', sa.Integer(), nullable=True, comment='Resolved property, set during violation creation'),
        sa.ForeignKeyConstraint(['job_id'], ['upload_jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'row_num', name='uq_upload_staging_job_row'),
    )
    op.create_index('idx_upload_staging_property_id', 'upload_staging', ['property_id'], unique=False)

    # Create violations table
    op.create_table(
        'violations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('upload_job_id', sa.Integer(), nullable=True, comment='Job that created this violation'),
        sa.Column('case_id', sa.String(length=100), nullable=True),
        sa.Column('violation_type', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True, comment='Internal only'),
        sa.Column('status', sa.String(length=50), nullable=True, comment='Free text'),
        sa.Column('opened_date', sa.Date(), nullable=True),
        sa.Column('last_updated', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['upload_job_id'], ['upload_jobs.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_violations_property_id', 'violations', ['property_id'], unique=False)
    op.create_index('idx_violations_upload_job_id', 'violations', ['upload_job_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_violations_upload_job_id', table_name='violations')
    op.drop_index('idx_violations_property_id', table_name='violations')
    op.drop_table('violations')

    op.drop_index('idx_upload_staging_property_id', table_name='upload_staging')
    op.drop_table('upload_staging')

    op.drop_index('idx_properties_address', table_name='properties')
    op.drop_index('idx_properties_city_state', table_name='properties')
    op.drop_table('properties')

    op.drop_index('idx_upload_jobs_parent_job_id', table_name='upload_jobs')
    op.drop_index('idx_upload_jobs_user_id', table_name='upload_jobs')
    op.drop_index('idx_upload_jobs_status_started', table_name='upload_jobs')
    op.drop_table('upload_jobs')

    op.drop_table('jurisdictions')
