"""Idempotent persistence of deduplicated terms and parts with provenance.

Each candidate is its own unit of work:

1. Resolve the identity key against the store.
2. Existing record: leave it untouched, add a provenance row unless one
   already exists for (record, document, page). Counted as skipped.
3. New record: embed it, insert the record and its first provenance row,
   commit both together. Counted as stored.

A candidate that cannot be embedded or persisted is rolled back, logged and
counted as failed; the batch continues. Connectivity-class store failures
propagate and fail the document.
"""

from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from manual_kb.core.exceptions import (
    EmbeddingError,
    StoreError,
    StoreUnavailableError,
    classify_store_error,
)
from manual_kb.models.extraction_models import CandidatePart, CandidateTerm
from manual_kb.models.pipeline_models import WriteStats
from manual_kb.pipeline.context import PipelineContext
from manual_kb.repositories.part_repository import PartRepository
from manual_kb.repositories.terminology_repository import TerminologyRepository
from manual_kb.services.embedding_service import EmbeddingService
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)

STORED = "stored"
SKIPPED = "skipped"


class KnowledgeStoreWriter:
    def __init__(
        self,
        session: AsyncSession,
        embedder: EmbeddingService,
        term_repo: Optional[TerminologyRepository] = None,
        part_repo: Optional[PartRepository] = None,
    ):
        self.session = session
        self.embedder = embedder
        self.term_repo = term_repo or TerminologyRepository(session)
        self.part_repo = part_repo or PartRepository(session)

    async def store_terms(
        self, terms: Iterable[CandidateTerm], context: PipelineContext
    ) -> WriteStats:
        stats = WriteStats()
        for term in terms:
            outcome = await self._guarded(
                self._store_term(term, context), "term", term.standard_term, context
            )
            _count(stats, outcome)

        LOGGER.info(
            f"Stored {stats.stored} new terms, skipped {stats.skipped} existing, {stats.failed} failed",
            extra={"document_id": str(context.document_id), **stats.model_dump()},
        )
        return stats

    async def store_parts(
        self, parts: Iterable[CandidatePart], context: PipelineContext
    ) -> WriteStats:
        stats = WriteStats()
        for part in parts:
            outcome = await self._guarded(
                self._store_part(part, context), "part", part.part_number or part.name, context
            )
            _count(stats, outcome)

        LOGGER.info(
            f"Stored {stats.stored} new parts, skipped {stats.skipped} existing, {stats.failed} failed",
            extra={"document_id": str(context.document_id), **stats.model_dump()},
        )
        return stats

    async def _guarded(self, unit, kind: str, key: str, context: PipelineContext) -> Optional[str]:
        """Run one candidate's unit of work; None means it failed and was rolled back."""
        try:
            return await unit
        except StoreUnavailableError:
            await self.session.rollback()
            raise
        except EmbeddingError as e:
            await self.session.rollback()
            LOGGER.warning(
                f"Skipping {kind} without embedding: {key}",
                extra={"document_id": str(context.document_id), "key": key, "error": str(e)},
            )
        except StoreError as e:
            await self.session.rollback()
            LOGGER.error(
                f"Error storing {kind} '{key}': {e}",
                extra={"document_id": str(context.document_id), "key": key},
            )
        return None

    async def _store_term(self, term: CandidateTerm, context: PipelineContext) -> str:
        key = term.identity_key
        try:
            existing_id = context.term_ids.get(key) or await self.term_repo.get_id_by_term(
                term.standard_term
            )
            if existing_id is not None:
                await self._add_term_provenance(existing_id, context)
                await self.session.commit()
                context.term_ids[key] = existing_id
                LOGGER.debug(f"Skipping existing term: {term.standard_term}")
                return SKIPPED

            embedding = await self.embedder.embed(term.embedding_text(), context.embedding_limiter)

            new_id = await self.term_repo.insert_term(
                standard_term=term.standard_term,
                category=term.category.value,
                variations=term.variations,
                description=term.description or None,
                embedding=embedding,
            )
            if new_id is None:
                # Another run inserted the same term after our lookup
                winner_id = await self.term_repo.get_id_by_term(term.standard_term)
                if winner_id is None:
                    raise StoreError(f"Term '{term.standard_term}' conflicted but could not be re-read")
                await self._add_term_provenance(winner_id, context)
                await self.session.commit()
                context.term_ids[key] = winner_id
                return SKIPPED

            await self._add_term_provenance(new_id, context)
            await self.session.commit()
        except SQLAlchemyError as e:
            raise classify_store_error(e) from e

        context.term_ids[key] = new_id
        LOGGER.debug(f"Stored term: {term.standard_term}")
        return STORED

    async def _add_term_provenance(self, terminology_id: UUID, context: PipelineContext) -> bool:
        return await self.term_repo.add_provenance(
            terminology_id=terminology_id,
            document_id=context.document_id,
            extraction_method=context.extraction_method,
            confidence_score=context.confidence_score,
            page_number=context.page_number,
        )

    async def _find_part(self, part: CandidatePart, context: PipelineContext) -> Optional[UUID]:
        if part.part_number:
            return await self.part_repo.find_by_part_number(part.part_number)

        existing_id = await self.part_repo.find_unnumbered_by_name(part.name)
        if existing_id is None:
            numbered = await self.part_repo.find_numbered_by_name(part.name)
            if numbered:
                # Same name as a numbered part; stored separately rather than merged
                LOGGER.warning(
                    f"Ambiguous part identity for unnumbered '{part.name}'",
                    extra={
                        "document_id": str(context.document_id),
                        "part_name": part.name,
                        "numbered_matches": [number for _, number in numbered],
                    },
                )
        return existing_id

    async def _store_part(self, part: CandidatePart, context: PipelineContext) -> str:
        key = part.identity_key
        try:
            existing_id = context.part_ids.get(key) or await self._find_part(part, context)
            if existing_id is not None:
                await self._add_part_provenance(existing_id, context)
                await self.session.commit()
                context.part_ids[key] = existing_id
                LOGGER.debug(f"Skipping existing part: {part.name}")
                return SKIPPED

            embedding = await self.embedder.embed(part.embedding_text(), context.embedding_limiter)

            new_id = await self.part_repo.insert_part(
                name=part.name,
                part_number=part.part_number,
                category=part.category.value,
                description=part.description or None,
                price=part.price,
                embedding=embedding,
            )
            if new_id is None:
                winner_id = await self._find_part(part, context)
                if winner_id is None:
                    raise StoreError(f"Part '{part.part_number or part.name}' conflicted but could not be re-read")
                await self._add_part_provenance(winner_id, context)
                await self.session.commit()
                context.part_ids[key] = winner_id
                return SKIPPED

            await self._add_part_provenance(new_id, context)
            await self.session.commit()
        except SQLAlchemyError as e:
            raise classify_store_error(e) from e

        context.part_ids[key] = new_id
        LOGGER.debug(f"Stored part: {part.name}")
        return STORED

    async def _add_part_provenance(self, part_id: UUID, context: PipelineContext) -> bool:
        return await self.part_repo.add_provenance(
            part_id=part_id,
            document_id=context.document_id,
            extraction_method=context.extraction_method,
            confidence_score=context.confidence_score,
            page_number=context.page_number,
        )


def _count(stats: WriteStats, outcome: Optional[str]) -> None:
    if outcome == STORED:
        stats.stored += 1
    elif outcome == SKIPPED:
        stats.skipped += 1
    else:
        stats.failed += 1
