"""Persist an accepted page analysis as a component/connection graph.

Components become nodes keyed by (schematic, name, part number); a repeated
component folds into the existing node. Each wire's connection list is an
ordered path and yields one edge per adjacent pair whose component names both
resolved to a node. Hops naming an unknown component, or none, are dropped.
"""

from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from manual_kb.core.exceptions import StoreUnavailableError, classify_store_error
from manual_kb.models.schematic_models import DetectedComponent, DetectedWire, SchematicAnalysis
from manual_kb.repositories.schematic_repository import SchematicRepository
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


def component_key(name: str) -> str:
    """Lookup key used to match wire endpoints to component names."""
    return " ".join(name.split()).casefold()


def _resolve(component_ids: Dict[str, UUID], name: Optional[str]) -> Optional[UUID]:
    if not name:
        return None
    return component_ids.get(component_key(name))


class SchematicGraphBuilder:
    def __init__(
        self,
        session: AsyncSession,
        schematic_repo: Optional[SchematicRepository] = None,
        confidence_threshold: float = 0.5,
    ):
        self.session = session
        self.schematic_repo = schematic_repo or SchematicRepository(session)
        self.confidence_threshold = confidence_threshold

    def accepts(self, analysis: SchematicAnalysis) -> bool:
        return (
            analysis.schematic_detected
            and analysis.detection_confidence >= self.confidence_threshold
        )

    async def build(
        self,
        document_id: UUID,
        page_number: int,
        analysis: SchematicAnalysis,
        source_image_ref: Optional[str] = None,
    ) -> Optional[UUID]:
        """Store the schematic graph for one page.

        Returns:
            The schematic id, or None when the analysis is below the confidence gate

        Raises:
            StoreError: If the schematic row itself cannot be stored
        """
        if not self.accepts(analysis):
            LOGGER.debug(
                f"Not storing page {page_number}: detected={analysis.schematic_detected}, "
                f"confidence={analysis.detection_confidence}"
            )
            return None

        try:
            schematic_id = await self.schematic_repo.create_schematic(
                document_id=document_id,
                page_number=page_number,
                schematic_type=analysis.schematic_type.value,
                detection_confidence=analysis.detection_confidence,
                source_image_ref=source_image_ref,
                raw_analysis=analysis.to_raw(),
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise classify_store_error(e) from e

        LOGGER.info(
            f"Stored schematic {schematic_id} for page {page_number}",
            extra={"document_id": str(document_id), "page_number": page_number},
        )

        component_ids = await self._store_components(schematic_id, analysis)
        connection_count = await self._store_connections(schematic_id, analysis, component_ids)

        LOGGER.info(
            f"Stored {len(component_ids)} components and {connection_count} connections",
            extra={
                "schematic_id": str(schematic_id),
                "components": len(component_ids),
                "connections": connection_count,
            },
        )
        return schematic_id

    async def _store_components(
        self, schematic_id: UUID, analysis: SchematicAnalysis
    ) -> Dict[str, UUID]:
        component_ids: Dict[str, UUID] = {}
        for component in analysis.components:
            component_id = await self._store_component(schematic_id, component)
            if component_id is not None:
                # First node registered under a name wins for wire resolution
                component_ids.setdefault(component_key(component.name), component_id)
        await self.session.commit()
        return component_ids

    async def _store_component(
        self, schematic_id: UUID, component: DetectedComponent
    ) -> Optional[UUID]:
        try:
            async with self.session.begin_nested():
                return await self.schematic_repo.upsert_component(
                    schematic_id=schematic_id,
                    name=component.name,
                    part_number=component.part_number,
                    component_type=component.component_type.value,
                    confidence=component.confidence,
                    voltage_rating=component.voltage_rating,
                    amperage_rating=component.amperage_rating,
                    additional_metadata=component.model_dump(
                        mode="json", by_alias=True, exclude_none=True
                    ),
                )
        except SQLAlchemyError as e:
            error = classify_store_error(e)
            if isinstance(error, StoreUnavailableError):
                raise error from e
            LOGGER.error(
                f"Error storing component {component.name}: {error}",
                extra={"schematic_id": str(schematic_id), "component": component.name},
            )
            return None

    async def _store_connections(
        self,
        schematic_id: UUID,
        analysis: SchematicAnalysis,
        component_ids: Dict[str, UUID],
    ) -> int:
        connection_count = 0
        for wire in analysis.wires:
            if len(wire.connections) < 2:
                continue
            for hop_from, hop_to in zip(wire.connections, wire.connections[1:]):
                from_id = _resolve(component_ids, hop_from.component)
                to_id = _resolve(component_ids, hop_to.component)
                if from_id is None or to_id is None:
                    continue
                if await self._store_connection(
                    schematic_id, wire, from_id, to_id, hop_from.terminal, hop_to.terminal
                ):
                    connection_count += 1
        await self.session.commit()
        return connection_count

    async def _store_connection(
        self,
        schematic_id: UUID,
        wire: DetectedWire,
        from_id: UUID,
        to_id: UUID,
        from_terminal: Optional[str],
        to_terminal: Optional[str],
    ) -> bool:
        try:
            async with self.session.begin_nested():
                await self.schematic_repo.create_connection(
                    schematic_id=schematic_id,
                    from_component_id=from_id,
                    to_component_id=to_id,
                    wire_id=wire.wire_id,
                    wire_color=wire.color,
                    wire_gauge=wire.gauge,
                    from_terminal=from_terminal,
                    to_terminal=to_terminal,
                    additional_metadata=wire.model_dump(mode="json", by_alias=True, exclude_none=True),
                )
            return True
        except SQLAlchemyError as e:
            error = classify_store_error(e)
            if isinstance(error, StoreUnavailableError):
                raise error from e
            LOGGER.error(
                f"Error storing connection {wire.wire_id or '?'}: {error}",
                extra={"schematic_id": str(schematic_id), "wire_id": wire.wire_id},
            )
            return False
