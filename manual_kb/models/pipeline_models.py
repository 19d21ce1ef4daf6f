"""Options and result summaries for a document processing run."""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ProcessingOptions(BaseModel):
    """Which sub-pipelines to run for a document."""

    extract_terms: bool = Field(True, description="Run term and part extraction over the text layer")
    extract_schematics: bool = Field(True, description="Run vision analysis over every page image")


class WriteStats(BaseModel):
    """Outcome counts for one batch handed to the knowledge store writer."""

    stored: int = 0
    skipped: int = 0
    failed: int = 0


class SchematicPageSummary(BaseModel):
    page_number: int
    detected: bool
    confidence: float
    schematic_type: Optional[str] = None
    components_count: int = 0
    schematic_id: Optional[UUID] = None
    error: Optional[str] = None


class SchematicStats(BaseModel):
    schematics_found: int = 0
    total_pages: int = 0
    pages: List[SchematicPageSummary] = Field(default_factory=list)


class DocumentJobResult(BaseModel):
    """Summary returned by a completed document run."""

    document_id: UUID
    status: str
    page_count: Optional[int] = None
    terms: WriteStats = Field(default_factory=WriteStats)
    parts: WriteStats = Field(default_factory=WriteStats)
    schematics: SchematicStats = Field(default_factory=SchematicStats)
