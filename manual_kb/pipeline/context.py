"""Per-run state shared by the pipeline components of one document.

A context is created for each document run and dropped afterwards; nothing
in it is shared between documents.
"""

from dataclasses import dataclass, field
from typing import Dict
from uuid import UUID

from manual_kb.core.config import PipelineSettings
from manual_kb.core.rate_limiter import NoopRateLimiter, RateLimiter, build_rate_limiter


@dataclass
class PipelineContext:
    document_id: UUID
    extraction_method: str
    confidence_score: float
    completion_limiter: RateLimiter = field(default_factory=NoopRateLimiter)
    embedding_limiter: RateLimiter = field(default_factory=NoopRateLimiter)
    vision_limiter: RateLimiter = field(default_factory=NoopRateLimiter)
    schematic_confidence_threshold: float = 0.5
    # Text extraction runs over the joined document text, so this stays None there
    page_number: int | None = None

    # identity key -> stored id, filled as candidates are resolved
    term_ids: Dict[str, UUID] = field(default_factory=dict)
    part_ids: Dict[str, UUID] = field(default_factory=dict)


def build_context(
    document_id: UUID,
    pipeline_settings: PipelineSettings,
    model_name: str,
) -> PipelineContext:
    """Fresh context with its own limiter instances, configured from settings."""
    kind = pipeline_settings.rate_limiter
    return PipelineContext(
        document_id=document_id,
        extraction_method=f"llm:{model_name}",
        confidence_score=pipeline_settings.provenance_confidence,
        completion_limiter=build_rate_limiter(kind, pipeline_settings.completion_request_delay),
        embedding_limiter=build_rate_limiter(kind, pipeline_settings.embedding_request_delay),
        vision_limiter=build_rate_limiter(kind, pipeline_settings.vision_request_delay),
        schematic_confidence_threshold=pipeline_settings.schematic_confidence_threshold,
    )
