"""Repository layer modules."""

from manual_kb.repositories.document_repository import DocumentRepository
from manual_kb.repositories.part_repository import PartRepository
from manual_kb.repositories.schematic_repository import SchematicRepository
from manual_kb.repositories.terminology_repository import TerminologyRepository

__all__ = [
    "DocumentRepository",
    "PartRepository",
    "SchematicRepository",
    "TerminologyRepository",
]
