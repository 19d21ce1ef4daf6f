"""First-occurrence deduplication of extracted candidates."""

from typing import Callable, Iterable, List, TypeVar

from manual_kb.models.extraction_models import CandidatePart, CandidateTerm

T = TypeVar("T")


def deduplicate(candidates: Iterable[T], key: Callable[[T], str]) -> List[T]:
    """Keep the first candidate for each identity key, preserving order."""
    seen = set()
    unique: List[T] = []
    for candidate in candidates:
        identity = key(candidate)
        if identity in seen:
            continue
        seen.add(identity)
        unique.append(candidate)
    return unique


def deduplicate_terms(terms: Iterable[CandidateTerm]) -> List[CandidateTerm]:
    return deduplicate(terms, key=lambda term: term.identity_key)


def deduplicate_parts(parts: Iterable[CandidatePart]) -> List[CandidatePart]:
    return deduplicate(parts, key=lambda part: part.identity_key)
