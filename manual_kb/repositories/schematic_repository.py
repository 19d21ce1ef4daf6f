from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from manual_kb.database.models import Schematic, SchematicComponent, SchematicConnection
from manual_kb.repositories.base_repository import BaseRepository


class SchematicRepository(BaseRepository[Schematic]):
    """Repository for schematic graphs: one schematic row, its component nodes and wire edges.

    Write methods flush only; the caller commits or rolls back.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Schematic)

    async def create_schematic(
        self,
        document_id: UUID,
        page_number: int,
        schematic_type: str,
        detection_confidence: float,
        source_image_ref: Optional[str],
        raw_analysis: Dict[str, Any],
    ) -> UUID:
        schematic = Schematic(
            document_id=document_id,
            page_number=page_number,
            schematic_type=schematic_type,
            detection_confidence=detection_confidence,
            source_image_ref=source_image_ref,
            raw_analysis=raw_analysis,
        )
        self.session.add(schematic)
        await self.session.flush()
        return schematic.id

    async def upsert_component(
        self,
        schematic_id: UUID,
        name: str,
        part_number: Optional[str],
        component_type: str,
        confidence: float,
        voltage_rating: Optional[str] = None,
        amperage_rating: Optional[str] = None,
        additional_metadata: Optional[Dict[str, Any]] = None,
    ) -> UUID:
        """Insert a component node, or return the id of the node already stored under the same key.

        The no-op update makes RETURNING yield the existing row on conflict.
        """
        stmt = insert(SchematicComponent).values(
            schematic_id=schematic_id,
            name=name,
            part_number=part_number,
            component_type=component_type,
            confidence=confidence,
            voltage_rating=voltage_rating,
            amperage_rating=amperage_rating,
            additional_metadata=additional_metadata,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_schematic_component_key",
            set_={"name": stmt.excluded.name},
        ).returning(SchematicComponent.id)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.scalar_one()

    async def create_connection(
        self,
        schematic_id: UUID,
        from_component_id: UUID,
        to_component_id: UUID,
        wire_id: Optional[str] = None,
        wire_color: Optional[str] = None,
        wire_gauge: Optional[str] = None,
        from_terminal: Optional[str] = None,
        to_terminal: Optional[str] = None,
        additional_metadata: Optional[Dict[str, Any]] = None,
    ) -> UUID:
        connection = SchematicConnection(
            schematic_id=schematic_id,
            wire_id=wire_id,
            from_component_id=from_component_id,
            to_component_id=to_component_id,
            wire_color=wire_color,
            wire_gauge=wire_gauge,
            from_terminal=from_terminal,
            to_terminal=to_terminal,
            additional_metadata=additional_metadata,
        )
        self.session.add(connection)
        await self.session.flush()
        return connection.id

    async def get_by_document(self, document_id: UUID) -> List[Schematic]:
        query = (
            select(Schematic)
            .where(Schematic.document_id == document_id)
            .order_by(Schematic.page_number)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
