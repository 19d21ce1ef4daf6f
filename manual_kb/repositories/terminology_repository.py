from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from manual_kb.database.models import TermProvenance, Terminology
from manual_kb.repositories.base_repository import BaseRepository


class TerminologyRepository(BaseRepository[Terminology]):
    """Repository for terminology entries and their provenance.

    Write methods flush only; the caller commits or rolls back.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Terminology)

    async def get_id_by_term(self, standard_term: str) -> Optional[UUID]:
        """Look up a stored term by its case-insensitive standard spelling."""
        query = select(Terminology.id).where(
            func.lower(Terminology.standard_term) == standard_term.lower()
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def insert_term(
        self,
        standard_term: str,
        category: str,
        variations: Sequence[str],
        description: Optional[str],
        embedding: List[float],
    ) -> Optional[UUID]:
        """Insert a new term.

        Returns:
            The new row id, or None if another writer already stored the term
        """
        stmt = (
            insert(Terminology)
            .values(
                standard_term=standard_term,
                category=category,
                variations=list(variations),
                description=description,
                embedding=embedding,
            )
            .on_conflict_do_nothing()
            .returning(Terminology.id)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.scalar_one_or_none()

    async def add_provenance(
        self,
        terminology_id: UUID,
        document_id: UUID,
        extraction_method: str,
        confidence_score: float,
        page_number: Optional[int] = None,
    ) -> bool:
        """Record where a term came from; a repeat of the same (term, document, page) is a no-op.

        Returns:
            True if a row was inserted
        """
        stmt = (
            insert(TermProvenance)
            .values(
                terminology_id=terminology_id,
                document_id=document_id,
                extraction_method=extraction_method,
                confidence_score=confidence_score,
                page_number=page_number,
            )
            .on_conflict_do_nothing(constraint="uq_term_provenance_term_document_page")
            .returning(TermProvenance.id)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.scalar_one_or_none() is not None

    async def count_provenance(self, terminology_id: UUID, document_id: Optional[UUID] = None) -> int:
        query = select(func.count()).select_from(TermProvenance).where(
            TermProvenance.terminology_id == terminology_id
        )
        if document_id is not None:
            query = query.where(TermProvenance.document_id == document_id)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def search_by_similarity(
        self,
        embedding: List[float],
        limit: int = 5,
        max_distance: float = 0.5,
    ) -> List[Tuple[Terminology, float]]:
        """Nearest terms by cosine distance.

        Returns:
            List of (term, distance) tuples, closest first
        """
        distance_expr = Terminology.embedding.cosine_distance(embedding)
        query = (
            select(Terminology, distance_expr.label("distance"))
            .where(distance_expr <= max_distance)
            .order_by(distance_expr)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [(row.Terminology, row.distance) for row in result]
