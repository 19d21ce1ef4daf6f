"""Manual processing activities for Temporal workflows."""

from typing import Any, Dict, Optional
from uuid import UUID

from temporalio import activity
from temporalio.exceptions import ApplicationError

from manual_kb.core.config import settings
from manual_kb.core.database import async_session_maker
from manual_kb.core.exceptions import ConfigurationError, DocumentNotFoundError
from manual_kb.models.pipeline_models import ProcessingOptions
from manual_kb.pipeline.document_job import DocumentJobController
from manual_kb.services.embedding_service import EmbeddingService

_embedder: Optional[EmbeddingService] = None


def get_embedder() -> EmbeddingService:
    """Embedding service shared by all activities in this worker process."""
    global _embedder
    if _embedder is None:
        _embedder = EmbeddingService(
            model_name=settings.embedding.model_name,
            dimension=settings.embedding.dimension,
        )
    return _embedder


@activity.defn(name="process_manual")
async def process_manual(document_id: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Run the document job controller for one manual in its own session."""
    activity.logger.info(
        "Starting manual processing",
        extra={"document_id": document_id}
    )

    processing_options = ProcessingOptions(**(options or {}))

    try:
        async with async_session_maker() as session:
            controller = DocumentJobController.from_settings(session, embedder=get_embedder())
            result = await controller.run(UUID(document_id), processing_options)
            return result.model_dump(mode="json")

    except (DocumentNotFoundError, ConfigurationError) as e:
        activity.logger.error(f"Manual processing rejected: {e}")
        raise ApplicationError(str(e), type=type(e).__name__, non_retryable=True) from e

    except Exception as e:
        activity.logger.error(f"Manual processing failed: {e}", exc_info=True)
        raise
