"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime
from decimal import Decimal

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from manual_kb.core.config import settings
from manual_kb.core.database import Base

EMBEDDING_DIMENSION = settings.embedding.dimension


class Document(Base):
    """Source manual submitted for ingestion."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    file_path: Mapped[str] = mapped_column(String, nullable=False)
    document_name: Mapped[str | None] = mapped_column(String, nullable=True)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | processing | completed | failed
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    processing_started_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )

    schematics: Mapped[list["Schematic"]] = relationship(
        "Schematic", back_populates="document", cascade="all, delete-orphan"
    )


class Terminology(Base):
    """Controlled vocabulary entry with its spoken/typo variations."""

    __tablename__ = "terminology"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    standard_term: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    variations: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBEDDING_DIMENSION), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    provenance: Mapped[list["TermProvenance"]] = relationship(
        "TermProvenance", back_populates="terminology", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("uq_terminology_standard_term_lower", func.lower(standard_term), unique=True),
    )


class TermProvenance(Base):
    """Links a stored term to the document (and page) that justified it."""

    __tablename__ = "term_provenance"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    terminology_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("terminology.id", ondelete="CASCADE"), nullable=False
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    extraction_method: Mapped[str] = mapped_column(String, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    page_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    terminology: Mapped["Terminology"] = relationship("Terminology", back_populates="provenance")

    __table_args__ = (
        UniqueConstraint(
            "terminology_id",
            "document_id",
            "page_number",
            name="uq_term_provenance_term_document_page",
            postgresql_nulls_not_distinct=True,
        ),
    )


class Part(Base):
    """Catalog part extracted from manuals."""

    __tablename__ = "parts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    part_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    has_synthetic_number: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False, default="Other")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBEDDING_DIMENSION), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    provenance: Mapped[list["PartProvenance"]] = relationship(
        "PartProvenance", back_populates="part", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_parts_name", "name"),
        Index(
            "uq_parts_synthetic_name_lower",
            func.lower(name),
            unique=True,
            postgresql_where=has_synthetic_number,
        ),
    )


class PartProvenance(Base):
    """Links a stored part to the document (and page) that justified it."""

    __tablename__ = "part_provenance"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    part_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("parts.id", ondelete="CASCADE"), nullable=False
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
    )
    extraction_method: Mapped[str] = mapped_column(String, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    page_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    part: Mapped["Part"] = relationship("Part", back_populates="provenance")

    __table_args__ = (
        UniqueConstraint(
            "part_id",
            "document_id",
            "page_number",
            name="uq_part_provenance_part_document_page",
            postgresql_nulls_not_distinct=True,
        ),
    )


class Schematic(Base):
    """Schematic detected on one page of a document."""

    __tablename__ = "schematics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)
    schematic_type: Mapped[str] = mapped_column(
        String, nullable=False, default="unknown"
    )  # wiring_diagram | refrigerant_flow | control_circuit | unknown
    detection_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    source_image_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    raw_analysis: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

    document: Mapped["Document"] = relationship("Document", back_populates="schematics")
    components: Mapped[list["SchematicComponent"]] = relationship(
        "SchematicComponent", back_populates="schematic", cascade="all, delete-orphan"
    )
    connections: Mapped[list["SchematicConnection"]] = relationship(
        "SchematicConnection", back_populates="schematic", cascade="all, delete-orphan"
    )


class SchematicComponent(Base):
    """Graph node: a component drawn on one schematic."""

    __tablename__ = "schematic_components"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    schematic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("schematics.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    part_number: Mapped[str | None] = mapped_column(String, nullable=True)
    component_type: Mapped[str] = mapped_column(
        String, nullable=False, default="other"
    )  # compressor | contactor | capacitor | fan | sensor | other
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    voltage_rating: Mapped[str | None] = mapped_column(String, nullable=True)
    amperage_rating: Mapped[str | None] = mapped_column(String, nullable=True)
    additional_metadata: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    schematic: Mapped["Schematic"] = relationship("Schematic", back_populates="components")

    __table_args__ = (
        UniqueConstraint(
            "schematic_id",
            "name",
            "part_number",
            name="uq_schematic_component_key",
            postgresql_nulls_not_distinct=True,
        ),
    )


class SchematicConnection(Base):
    """Graph edge: one wire hop between two components of the same schematic."""

    __tablename__ = "schematic_connections"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    schematic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("schematics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    wire_id: Mapped[str | None] = mapped_column(String, nullable=True)
    from_component_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("schematic_components.id", ondelete="CASCADE"), nullable=False
    )
    to_component_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("schematic_components.id", ondelete="CASCADE"), nullable=False
    )
    wire_color: Mapped[str | None] = mapped_column(String, nullable=True)
    wire_gauge: Mapped[str | None] = mapped_column(String, nullable=True)
    from_terminal: Mapped[str | None] = mapped_column(String, nullable=True)
    to_terminal: Mapped[str | None] = mapped_column(String, nullable=True)
    additional_metadata: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    schematic: Mapped["Schematic"] = relationship("Schematic", back_populates="connections")
