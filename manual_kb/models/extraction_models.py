"""Data models for candidate terms and parts produced by the extractor.

Candidates are ephemeral: they are validated from completion output,
deduplicated, embedded and written, then discarded.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class TermCategory(str, Enum):
    """Categories of controlled-vocabulary terms."""

    REFRIGERANT = "refrigerant"
    EQUIPMENT = "equipment"
    VOLTAGE = "voltage"
    PART_TYPE = "part_type"
    MEASUREMENT = "measurement"
    ACTION = "action"
    BRAND = "brand"


class PartCategory(str, Enum):
    """Known part categories; anything else is filed under OTHER."""

    ELECTRICAL = "Electrical"
    REFRIGERANT = "Refrigerant"
    FILTERS = "Filters"
    CONTROLS = "Controls"
    MECHANICAL = "Mechanical"
    MOTORS = "Motors"
    COMPRESSORS = "Compressors"
    SUPPLIES = "Supplies"
    OTHER = "Other"


class CandidateTerm(BaseModel):
    """A term as extracted from one chunk, before deduplication."""

    standard_term: str = Field(..., min_length=1, description="Canonical spelling, e.g. R-410A")
    variations: List[str] = Field(
        default_factory=list,
        description="Phonetic and typo variations used for transcription correction",
    )
    category: TermCategory
    description: str = ""

    @field_validator("standard_term")
    @classmethod
    def _strip_term(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("standard_term must not be blank")
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        if isinstance(value, str):
            return value.strip().lower().replace(" ", "_")
        return value

    @field_validator("variations", mode="before")
    @classmethod
    def _clean_variations(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v).strip() for v in value if v is not None and str(v).strip()]

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value):
        return value or ""

    @property
    def identity_key(self) -> str:
        return self.standard_term.lower()

    def embedding_text(self) -> str:
        """Canonical text embedded for retrieval."""
        return " ".join(
            part for part in (self.standard_term, " ".join(self.variations), self.description) if part
        )


class CandidatePart(BaseModel):
    """A part as extracted from one chunk, before deduplication."""

    name: str = Field(..., min_length=1)
    part_number: Optional[str] = None
    category: PartCategory = PartCategory.OTHER
    description: str = ""
    price: Optional[Decimal] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("part_number", mode="before")
    @classmethod
    def _blank_part_number(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        if not value or value.lower() in {"null", "none", "n/a"}:
            return None
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value):
        if not isinstance(value, str):
            return PartCategory.OTHER
        for category in PartCategory:
            if category.value.lower() == value.strip().lower():
                return category
        return PartCategory.OTHER

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value):
        return value or ""

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, value):
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, str):
            value = value.replace("$", "").replace(",", "").strip()
            if not value:
                return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"price is not numeric: {value!r}")

    @property
    def identity_key(self) -> str:
        return (self.part_number or self.name).lower()

    def embedding_text(self) -> str:
        return " ".join(part for part in (self.name, self.description, self.category.value) if part)
