"""Semantic lookup over stored parts and terminology."""

from typing import Any, Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from manual_kb.repositories.part_repository import PartRepository
from manual_kb.repositories.terminology_repository import TerminologyRepository
from manual_kb.services.embedding_service import EmbeddingService
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SemanticSearchService:
    """Ranks stored records by cosine similarity to a free-text query.

    Similarity is ``1 - cosine distance``; hits below ``min_similarity`` are
    not returned.
    """

    def __init__(self, session: AsyncSession, embedder: EmbeddingService):
        self.embedder = embedder
        self.part_repo = PartRepository(session)
        self.term_repo = TerminologyRepository(session)

    async def search_parts(
        self, query: str, limit: int = 5, min_similarity: float = 0.5
    ) -> List[Dict[str, Any]]:
        embedding = await self.embedder.embed(query)
        rows = await self.part_repo.search_by_similarity(
            embedding, limit=limit, max_distance=1 - min_similarity
        )
        LOGGER.debug(f"Part search returned {len(rows)} hits", extra={"query": query})
        return [
            {
                "id": part.id,
                "part_number": None if part.has_synthetic_number else part.part_number,
                "name": part.name,
                "category": part.category,
                "description": part.description,
                "price": part.price,
                "similarity": 1 - float(distance),
            }
            for part, distance in rows
        ]

    async def search_terminology(
        self, query: str, limit: int = 5, min_similarity: float = 0.5
    ) -> List[Dict[str, Any]]:
        embedding = await self.embedder.embed(query)
        rows = await self.term_repo.search_by_similarity(
            embedding, limit=limit, max_distance=1 - min_similarity
        )
        LOGGER.debug(f"Terminology search returned {len(rows)} hits", extra={"query": query})
        return [
            {
                "id": term.id,
                "standard_term": term.standard_term,
                "category": term.category,
                "variations": list(term.variations or []),
                "description": term.description,
                "similarity": 1 - float(distance),
            }
            for term, distance in rows
        ]
