"""Fixed-size text chunking for extraction requests.

Chunks are contiguous, non-overlapping slices in original order. Sentence and
paragraph boundaries are not respected; the extraction prompts tell the model
it may see a partial sentence at either end.
"""

from typing import Iterator


def iter_chunks(text: str, chunk_size: int) -> Iterator[str]:
    """Yield ``text`` in slices of at most ``chunk_size`` characters.

    Raises:
        ValueError: If chunk_size is not positive
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return _generate(text, chunk_size)


def _generate(text: str, chunk_size: int) -> Iterator[str]:
    for start in range(0, len(text), chunk_size):
        yield text[start:start + chunk_size]


class TextChunker:
    """Restartable chunk sequence: each iteration starts again from the beginning."""

    def __init__(self, text: str, chunk_size: int):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.text = text
        self.chunk_size = chunk_size

    def __iter__(self) -> Iterator[str]:
        return _generate(self.text, self.chunk_size)

    def __len__(self) -> int:
        return -(-len(self.text) // self.chunk_size)
