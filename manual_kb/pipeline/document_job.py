"""Document job controller: the per-document state machine.

    pending -> processing -> completed
                          -> failed (error_message set, exception re-raised)

A completed or failed document can be submitted again; the new run starts
over at processing and relies on idempotent writes for safety.

Per-chunk, per-candidate and per-page failures are absorbed by the
components themselves. What reaches this controller (unreadable source,
store unreachable, configuration problems) fails the document.
"""

import asyncio
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Union
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from manual_kb.core.config import PipelineSettings, settings
from manual_kb.core.database import async_session_maker
from manual_kb.core.exceptions import DocumentNotFoundError, StoreError, StoreUnavailableError
from manual_kb.core.llm_client import create_text_client, create_vision_client
from manual_kb.models.pipeline_models import (
    DocumentJobResult,
    ProcessingOptions,
    SchematicPageSummary,
    SchematicStats,
)
from manual_kb.pipeline.context import PipelineContext, build_context
from manual_kb.repositories.document_repository import DocumentRepository
from manual_kb.services.deduplication import deduplicate_parts, deduplicate_terms
from manual_kb.services.document_source import DocumentSource, PdfDocumentSource
from manual_kb.services.embedding_service import EmbeddingService
from manual_kb.services.extraction_service import PartExtractor, TermExtractor
from manual_kb.services.knowledge_store_writer import KnowledgeStoreWriter
from manual_kb.services.schematic_analyzer import SchematicPageAnalyzer
from manual_kb.services.schematic_graph_builder import SchematicGraphBuilder
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentJobController:
    """Runs the text pipeline and the schematic pipeline for one document.

    Attributes:
        session: Database session owned by this run
        source_factory: Callable returning an async context manager that
            yields a DocumentSource for a file path or URL
    """

    def __init__(
        self,
        session: AsyncSession,
        text_client,
        vision_client,
        embedder: EmbeddingService,
        pipeline_settings: Optional[PipelineSettings] = None,
        model_name: str = "",
        source_factory: Callable[[str], DocumentSource] = PdfDocumentSource,
    ):
        self.session = session
        self.pipeline_settings = pipeline_settings or settings.pipeline
        self.model_name = model_name or getattr(text_client, "model", None) or "unknown"
        self.source_factory = source_factory

        self.document_repo = DocumentRepository(session)
        self.term_extractor = TermExtractor(
            text_client,
            chunk_size=self.pipeline_settings.chunk_size,
            temperature=self.pipeline_settings.extraction_temperature,
        )
        self.part_extractor = PartExtractor(
            text_client,
            chunk_size=self.pipeline_settings.chunk_size,
            temperature=self.pipeline_settings.extraction_temperature,
        )
        self.writer = KnowledgeStoreWriter(session, embedder)
        self.analyzer = SchematicPageAnalyzer(
            vision_client,
            temperature=self.pipeline_settings.vision_temperature,
            max_tokens=self.pipeline_settings.vision_max_tokens,
        )
        self.graph_builder = SchematicGraphBuilder(
            session,
            confidence_threshold=self.pipeline_settings.schematic_confidence_threshold,
        )

    @classmethod
    def from_settings(
        cls, session: AsyncSession, embedder: Optional[EmbeddingService] = None
    ) -> "DocumentJobController":
        """Controller wired with the configured completion clients and embedding model."""
        return cls(
            session=session,
            text_client=create_text_client(settings.llm),
            vision_client=create_vision_client(settings.llm),
            embedder=embedder or EmbeddingService(
                model_name=settings.embedding.model_name,
                dimension=settings.embedding.dimension,
            ),
            pipeline_settings=settings.pipeline,
            model_name=settings.llm.text_model,
        )

    async def run(
        self, document_id: UUID, options: Optional[ProcessingOptions] = None
    ) -> DocumentJobResult:
        """Process one document end to end.

        Raises:
            DocumentNotFoundError: If the document does not exist
            Exception: Any unrecovered error, after the document is marked failed
        """
        options = options or ProcessingOptions()

        document = await self.document_repo.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        file_path = document.file_path

        await self.document_repo.mark_processing(document_id)
        LOGGER.info(
            "Starting document processing",
            extra={
                "document_id": str(document_id),
                "file_path": file_path,
                "extract_terms": options.extract_terms,
                "extract_schematics": options.extract_schematics,
            },
        )

        context = build_context(document_id, self.pipeline_settings, self.model_name)
        result = DocumentJobResult(document_id=document_id, status="processing")

        try:
            async with self.source_factory(file_path) as source:
                result.page_count = await source.get_page_count()
                await self.document_repo.update_page_count(document_id, result.page_count)

                if options.extract_terms:
                    await self._run_text_pipeline(source, context, result)
                else:
                    LOGGER.info("Skipping term/part extraction", extra={"document_id": str(document_id)})

                if options.extract_schematics:
                    result.schematics = await self._run_schematic_pipeline(
                        source, file_path, result.page_count, context
                    )

            await self.document_repo.mark_completed(document_id)

        except Exception as e:
            await self._record_failure(document_id, e)
            raise

        result.status = "completed"
        LOGGER.info(
            "Document processing completed",
            extra={
                "document_id": str(document_id),
                "terms": result.terms.model_dump(),
                "parts": result.parts.model_dump(),
                "schematics_found": result.schematics.schematics_found,
            },
        )
        return result

    async def _run_text_pipeline(
        self, source: DocumentSource, context: PipelineContext, result: DocumentJobResult
    ) -> None:
        text = await source.get_full_text()
        if not text.strip():
            LOGGER.warning(
                "Document has no text layer; nothing to extract",
                extra={"document_id": str(context.document_id)},
            )
            return

        terms = deduplicate_terms(await self.term_extractor.extract(text, context))
        LOGGER.info(f"Extracted {len(terms)} unique terms", extra={"document_id": str(context.document_id)})
        result.terms = await self.writer.store_terms(terms, context)

        parts = deduplicate_parts(await self.part_extractor.extract(text, context))
        LOGGER.info(f"Extracted {len(parts)} unique parts", extra={"document_id": str(context.document_id)})
        result.parts = await self.writer.store_parts(parts, context)

    async def _run_schematic_pipeline(
        self,
        source: DocumentSource,
        file_path: str,
        page_count: int,
        context: PipelineContext,
    ) -> SchematicStats:
        stats = SchematicStats(total_pages=page_count)
        LOGGER.info(
            f"Starting schematic analysis of {page_count} pages",
            extra={"document_id": str(context.document_id)},
        )

        for page_number in range(1, page_count + 1):
            image = await source.get_page_image(
                page_number, resolution=self.pipeline_settings.page_image_resolution
            )
            analysis = await self.analyzer.analyze(image, page_number, context.vision_limiter)

            summary = SchematicPageSummary(
                page_number=page_number,
                detected=analysis.schematic_detected,
                confidence=analysis.detection_confidence,
                schematic_type=analysis.schematic_type.value if analysis.schematic_detected else None,
                components_count=len(analysis.components),
                error=analysis.error,
            )

            if self.graph_builder.accepts(analysis):
                image_ref = await self._source_image_ref(image, file_path, context.document_id, page_number)
                try:
                    summary.schematic_id = await self.graph_builder.build(
                        context.document_id, page_number, analysis, image_ref
                    )
                except StoreUnavailableError:
                    raise
                except StoreError as e:
                    LOGGER.error(
                        f"Failed to store schematic for page {page_number}: {e}",
                        extra={"document_id": str(context.document_id), "page_number": page_number},
                    )
                    summary.error = str(e)

                if summary.schematic_id is not None:
                    stats.schematics_found += 1

            stats.pages.append(summary)

        LOGGER.info(
            f"Schematic analysis complete: {stats.schematics_found} schematics found",
            extra={"document_id": str(context.document_id), "total_pages": page_count},
        )
        return stats

    async def _source_image_ref(
        self, image, file_path: str, document_id: UUID, page_number: int
    ) -> str:
        """Save the page image when an image directory is configured, else point into the source."""
        fallback = f"{file_path}#page={page_number}"
        image_dir = self.pipeline_settings.schematic_image_dir
        if not image_dir:
            return fallback

        path = Path(image_dir) / f"{document_id}_page_{page_number}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(image.save, path, format="PNG")
        except OSError as e:
            LOGGER.warning(
                f"Could not save schematic image for page {page_number}: {e}",
                extra={"document_id": str(document_id), "path": str(path)},
            )
            return fallback
        return str(path)

    async def _record_failure(self, document_id: UUID, error: Exception) -> None:
        message = str(error) or type(error).__name__
        LOGGER.error(
            f"Document processing failed: {message}",
            extra={"document_id": str(document_id), "error_type": type(error).__name__},
            exc_info=True,
        )
        try:
            await self.session.rollback()
            await self.document_repo.mark_failed(document_id, message)
        except SQLAlchemyError:
            # The original error is re-raised by the caller
            LOGGER.error(
                "Could not record failed status",
                extra={"document_id": str(document_id)},
                exc_info=True,
            )


async def process_documents(
    document_ids: Iterable[UUID],
    options: Optional[ProcessingOptions] = None,
    max_concurrency: Optional[int] = None,
    controller_factory: Optional[Callable[[AsyncSession], DocumentJobController]] = None,
    session_factory=async_session_maker,
) -> Dict[UUID, Union[DocumentJobResult, BaseException]]:
    """Process several documents concurrently, one session and controller each.

    One document's failure never cancels the others; its exception is
    returned in place of a result.
    """
    document_ids = list(document_ids)
    semaphore = asyncio.Semaphore(max_concurrency or settings.pipeline.max_concurrent_documents)

    if controller_factory is None:
        embedder = EmbeddingService(
            model_name=settings.embedding.model_name,
            dimension=settings.embedding.dimension,
        )

        def controller_factory(session: AsyncSession) -> DocumentJobController:
            return DocumentJobController.from_settings(session, embedder=embedder)

    async def _process(document_id: UUID) -> DocumentJobResult:
        async with semaphore:
            async with session_factory() as session:
                controller = controller_factory(session)
                return await controller.run(document_id, options)

    results = await asyncio.gather(
        *(_process(document_id) for document_id in document_ids),
        return_exceptions=True,
    )

    outcome = dict(zip(document_ids, results))
    failed = sum(1 for value in results if isinstance(value, BaseException))
    LOGGER.info(
        f"Processed {len(document_ids)} documents, {failed} failed",
        extra={"documents": len(document_ids), "failed": failed},
    )
    return outcome
