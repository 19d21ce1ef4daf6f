"""Data models for vision analysis of schematic pages.

A page analysis is validated in one piece: a response that does not match
this shape is a parse failure for the whole page, never a partial result.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SchematicType(str, Enum):
    """Kinds of schematic drawings found in equipment manuals."""

    WIRING_DIAGRAM = "wiring_diagram"
    REFRIGERANT_FLOW = "refrigerant_flow"
    CONTROL_CIRCUIT = "control_circuit"
    UNKNOWN = "unknown"


class ComponentType(str, Enum):
    """Component classes recognised on a schematic."""

    COMPRESSOR = "compressor"
    CONTACTOR = "contactor"
    CAPACITOR = "capacitor"
    FAN = "fan"
    SENSOR = "sensor"
    OTHER = "other"


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if not value or value.lower() in {"null", "none", "n/a"}:
        return None
    return value


class WireSpec(BaseModel):
    color: Optional[str] = None
    gauge: Optional[str] = None

    @field_validator("color", "gauge", mode="before")
    @classmethod
    def _clean(cls, value):
        return _optional_text(value)


class ComponentTerminal(BaseModel):
    """A terminal listed on the component itself."""

    terminal: Optional[str] = None
    wire: Optional[WireSpec] = None

    @field_validator("terminal", mode="before")
    @classmethod
    def _clean(cls, value):
        return _optional_text(value)


class DetectedComponent(BaseModel):
    """A component node as reported by the vision model."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    part_number: Optional[str] = None
    component_type: ComponentType = Field(default=ComponentType.OTHER, alias="type")
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    voltage_rating: Optional[str] = None
    amperage_rating: Optional[str] = None
    connections: List[ComponentTerminal] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("component name must not be blank")
        return value

    @field_validator("part_number", "voltage_rating", "amperage_rating", mode="before")
    @classmethod
    def _clean_optional(cls, value):
        return _optional_text(value)

    @field_validator("component_type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if value is None:
            return ComponentType.OTHER
        value = str(value).strip().lower()
        if value not in {t.value for t in ComponentType}:
            return ComponentType.OTHER
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _default_confidence(cls, value):
        return 0.8 if value is None else value

    @field_validator("connections", mode="before")
    @classmethod
    def _default_connections(cls, value):
        return value or []


class WireEndpoint(BaseModel):
    """One point along a wire's path."""

    component: Optional[str] = None
    terminal: Optional[str] = None

    @field_validator("component", "terminal", mode="before")
    @classmethod
    def _clean(cls, value):
        return _optional_text(value)


class DetectedWire(BaseModel):
    """A wire and the ordered path of components it touches."""

    wire_id: Optional[str] = Field(default=None, alias="id")
    color: Optional[str] = None
    gauge: Optional[str] = None
    connections: List[WireEndpoint] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("wire_id", "color", "gauge", mode="before")
    @classmethod
    def _clean(cls, value):
        return _optional_text(value)

    @field_validator("connections", mode="before")
    @classmethod
    def _default_connections(cls, value):
        if not isinstance(value, list):
            return value or []
        # A bare name or null stands for an endpoint without a terminal
        return [
            {"component": endpoint} if endpoint is None or isinstance(endpoint, str) else endpoint
            for endpoint in value
        ]


class SchematicAnalysis(BaseModel):
    """Result of analysing one rendered page.

    ``error`` is set only on results synthesised after a capability or parse
    failure; those are always "not detected" with zero confidence.
    """

    schematic_detected: bool
    detection_confidence: float = Field(..., ge=0.0, le=1.0)
    schematic_type: SchematicType = SchematicType.UNKNOWN
    components: List[DetectedComponent] = Field(default_factory=list)
    wires: List[DetectedWire] = Field(default_factory=list)
    error: Optional[str] = None

    @field_validator("schematic_type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if value is None:
            return SchematicType.UNKNOWN
        value = str(value).strip().lower()
        if value not in {t.value for t in SchematicType}:
            return SchematicType.UNKNOWN
        return value

    @field_validator("components", "wires", mode="before")
    @classmethod
    def _default_list(cls, value):
        return [] if value is None else value

    @classmethod
    def not_detected(cls, error: str) -> "SchematicAnalysis":
        return cls(
            schematic_detected=False,
            detection_confidence=0.0,
            components=[],
            wires=[],
            error=error,
        )

    def to_raw(self) -> Dict[str, Any]:
        """Opaque blob persisted alongside the schematic row."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
