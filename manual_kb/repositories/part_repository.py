import uuid
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from manual_kb.database.models import Part, PartProvenance
from manual_kb.repositories.base_repository import BaseRepository


def synthetic_part_number() -> str:
    """Store-assigned identifier for parts extracted without a number."""
    return f"AUTO-{uuid.uuid4().hex[:12].upper()}"


class PartRepository(BaseRepository[Part]):
    """Repository for catalog parts and their provenance.

    A part is identified by its real part number when it has one, otherwise by
    its case-insensitive name among parts carrying a synthetic number.
    Write methods flush only; the caller commits or rolls back.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Part)

    async def find_by_part_number(self, part_number: str) -> Optional[UUID]:
        query = select(Part.id).where(
            Part.part_number == part_number,
            Part.has_synthetic_number.is_(False),
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_unnumbered_by_name(self, name: str) -> Optional[UUID]:
        """Find a part stored without a real number whose name matches."""
        query = select(Part.id).where(
            func.lower(Part.name) == name.lower(),
            Part.has_synthetic_number.is_(True),
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_numbered_by_name(self, name: str) -> List[Tuple[UUID, str]]:
        """Parts with a real number sharing this name, as (id, part_number)."""
        query = select(Part.id, Part.part_number).where(
            func.lower(Part.name) == name.lower(),
            Part.has_synthetic_number.is_(False),
        )
        result = await self.session.execute(query)
        return [(row.id, row.part_number) for row in result]

    async def insert_part(
        self,
        name: str,
        part_number: Optional[str],
        category: str,
        description: Optional[str],
        price: Optional[Decimal],
        embedding: List[float],
    ) -> Optional[UUID]:
        """Insert a new part, assigning a synthetic number when none was extracted.

        Returns:
            The new row id, or None if another writer already stored the part
        """
        has_synthetic_number = part_number is None
        stmt = (
            insert(Part)
            .values(
                part_number=part_number or synthetic_part_number(),
                has_synthetic_number=has_synthetic_number,
                name=name,
                category=category,
                description=description,
                price=price,
                embedding=embedding,
            )
            .on_conflict_do_nothing()
            .returning(Part.id)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.scalar_one_or_none()

    async def add_provenance(
        self,
        part_id: UUID,
        document_id: UUID,
        extraction_method: str,
        confidence_score: float,
        page_number: Optional[int] = None,
    ) -> bool:
        """Record where a part came from; a repeat of the same (part, document, page) is a no-op."""
        stmt = (
            insert(PartProvenance)
            .values(
                part_id=part_id,
                document_id=document_id,
                extraction_method=extraction_method,
                confidence_score=confidence_score,
                page_number=page_number,
            )
            .on_conflict_do_nothing(constraint="uq_part_provenance_part_document_page")
            .returning(PartProvenance.id)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.scalar_one_or_none() is not None

    async def count_provenance(self, part_id: UUID, document_id: Optional[UUID] = None) -> int:
        query = select(func.count()).select_from(PartProvenance).where(
            PartProvenance.part_id == part_id
        )
        if document_id is not None:
            query = query.where(PartProvenance.document_id == document_id)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def search_by_similarity(
        self,
        embedding: List[float],
        limit: int = 5,
        max_distance: float = 0.5,
    ) -> List[Tuple[Part, float]]:
        distance_expr = Part.embedding.cosine_distance(embedding)
        query = (
            select(Part, distance_expr.label("distance"))
            .where(distance_expr <= max_distance)
            .order_by(distance_expr)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [(row.Part, row.distance) for row in result]
