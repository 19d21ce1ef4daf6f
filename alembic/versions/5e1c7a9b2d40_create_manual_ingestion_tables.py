"""Create manual ingestion tables.

Revision ID: 5e1c7a9b2d40
Revises:
Create Date: 2026-10-19

Creates documents, terminology and parts (with pgvector embeddings), their
provenance tables, and the schematic graph tables. Provenance and component
keys are NULLS NOT DISTINCT so a missing page or part number still takes part
in the uniqueness check (requires PostgreSQL 15+).
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision = '5e1c7a9b2d40'
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_DIMENSION = 384


def upgrade() -> None:
    """Create all ingestion tables."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        'documents',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('file_path', sa.String(), nullable=False),
        sa.Column('document_name', sa.String(), nullable=True),
        sa.Column('page_count', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending',
                  comment='pending, processing, completed, failed'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('processing_started_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('processed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('uploaded_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
    )

    # Terminology
    op.create_table(
        'terminology',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('standard_term', sa.String(), nullable=False, unique=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('variations', postgresql.ARRAY(sa.String()), nullable=False, server_default='{}'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('embedding', Vector(EMBEDDING_DIMENSION), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
    )
    op.create_index(
        'uq_terminology_standard_term_lower',
        'terminology',
        [sa.text('lower(standard_term)')],
        unique=True,
    )

    op.create_table(
        'term_provenance',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('terminology_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('terminology.id', ondelete='CASCADE'), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('extraction_method', sa.String(), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('page_number', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
        sa.UniqueConstraint(
            'terminology_id', 'document_id', 'page_number',
            name='uq_term_provenance_term_document_page',
            postgresql_nulls_not_distinct=True,
        ),
    )

    # Parts
    op.create_table(
        'parts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('part_number', sa.String(), nullable=False, unique=True),
        sa.Column('has_synthetic_number', sa.Boolean(), nullable=False, server_default=sa.false(),
                  comment='True when part_number was assigned by the store (AUTO-...)'),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False, server_default='Other'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('embedding', Vector(EMBEDDING_DIMENSION), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
    )
    op.create_index('ix_parts_name', 'parts', ['name'])
    op.create_index(
        'uq_parts_synthetic_name_lower',
        'parts',
        [sa.text('lower(name)')],
        unique=True,
        postgresql_where=sa.text('has_synthetic_number'),
    )

    op.create_table(
        'part_provenance',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('part_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('parts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('extraction_method', sa.String(), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=False),
        sa.Column('page_number', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
        sa.UniqueConstraint(
            'part_id', 'document_id', 'page_number',
            name='uq_part_provenance_part_document_page',
            postgresql_nulls_not_distinct=True,
        ),
    )

    # Schematic graph
    op.create_table(
        'schematics',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('document_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('page_number', sa.Integer(), nullable=False, comment='1-indexed page number'),
        sa.Column('schematic_type', sa.String(), nullable=False, server_default='unknown',
                  comment='wiring_diagram, refrigerant_flow, control_circuit, unknown'),
        sa.Column('detection_confidence', sa.Float(), nullable=False),
        sa.Column('source_image_ref', sa.String(), nullable=True),
        sa.Column('raw_analysis', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()')),
    )
    op.create_index('ix_schematics_document_id', 'schematics', ['document_id'])

    op.create_table(
        'schematic_components',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('schematic_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('schematics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('part_number', sa.String(), nullable=True),
        sa.Column('component_type', sa.String(), nullable=False, server_default='other'),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('voltage_rating', sa.String(), nullable=True),
        sa.Column('amperage_rating', sa.String(), nullable=True),
        sa.Column('additional_metadata', postgresql.JSONB(), nullable=True),
        sa.UniqueConstraint(
            'schematic_id', 'name', 'part_number',
            name='uq_schematic_component_key',
            postgresql_nulls_not_distinct=True,
        ),
    )

    op.create_table(
        'schematic_connections',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('schematic_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('schematics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('wire_id', sa.String(), nullable=True),
        sa.Column('from_component_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('schematic_components.id', ondelete='CASCADE'), nullable=False),
        sa.Column('to_component_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('schematic_components.id', ondelete='CASCADE'), nullable=False),
        sa.Column('wire_color', sa.String(), nullable=True),
        sa.Column('wire_gauge', sa.String(), nullable=True),
        sa.Column('from_terminal', sa.String(), nullable=True),
        sa.Column('to_terminal', sa.String(), nullable=True),
        sa.Column('additional_metadata', postgresql.JSONB(), nullable=True),
    )
    op.create_index('ix_schematic_connections_schematic_id', 'schematic_connections', ['schematic_id'])


def downgrade() -> None:
    """Drop all ingestion tables."""
    op.drop_index('ix_schematic_connections_schematic_id', table_name='schematic_connections')
    op.drop_table('schematic_connections')
    op.drop_table('schematic_components')
    op.drop_index('ix_schematics_document_id', table_name='schematics')
    op.drop_table('schematics')
    op.drop_table('part_provenance')
    op.drop_index('uq_parts_synthetic_name_lower', table_name='parts')
    op.drop_index('ix_parts_name', table_name='parts')
    op.drop_table('parts')
    op.drop_table('term_provenance')
    op.drop_index('uq_terminology_standard_term_lower', table_name='terminology')
    op.drop_table('terminology')
    op.drop_table('documents')
