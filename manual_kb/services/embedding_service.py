import asyncio
from typing import List, Optional

import numpy as np
from sentence_transformers import SentenceTransformer

from manual_kb.core.exceptions import EmbeddingError
from manual_kb.core.rate_limiter import RateLimiter
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


class EmbeddingService:
    """Sentence embeddings for terms, parts and search queries.

    Uses the same model at ingestion and at query time so stored vectors and
    query vectors are comparable. Vectors are L2-normalised.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", dimension: int = 384):
        self.model_name = model_name
        self.dimension = dimension
        self._model = None  # Lazy load the model

    @property
    def model(self) -> SentenceTransformer:
        """Lazy loader for the SentenceTransformer model."""
        if self._model is None:
            LOGGER.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
        return self._model

    async def embed(self, text: str, limiter: Optional[RateLimiter] = None) -> List[float]:
        """Embed one text.

        Raises:
            EmbeddingError: If the text is empty, encoding fails or the vector
                has the wrong dimension
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        if limiter is not None:
            await limiter.acquire()

        try:
            # Load on the event loop thread so concurrent callers never load twice
            model = self.model
            vector = await asyncio.to_thread(model.encode, text, normalize_embeddings=True)
        except Exception as e:
            LOGGER.error(f"Embedding generation failed: {e}", extra={"text": text[:100]})
            raise EmbeddingError(f"Embedding generation failed: {e}", original_error=e) from e

        values = np.asarray(vector, dtype=float).ravel().tolist()
        if len(values) != self.dimension:
            raise EmbeddingError(
                f"Embedding has dimension {len(values)}, expected {self.dimension}"
            )
        return values
