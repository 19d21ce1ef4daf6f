from typing import Optional
from uuid import UUID
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from manual_kb.repositories.base_repository import BaseRepository
from manual_kb.database.models import Document


class DocumentRepository(BaseRepository[Document]):
    """Repository for managing Document records and their status lifecycle.

    Status moves pending -> processing -> completed | failed. A completed or
    failed document may be moved back to processing by a new run.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Document)

    async def create_document(
        self,
        file_path: str,
        document_name: Optional[str] = None,
        page_count: Optional[int] = None,
        status: str = "pending"
    ) -> Document:
        """Create a new document record.

        Args:
            file_path: Path or URL of the manual
            document_name: Display name
            page_count: Number of pages, if already known
            status: Initial status

        Returns:
            Created Document record
        """
        return await self.create(
            file_path=file_path,
            document_name=document_name,
            page_count=page_count,
            status=status,
            uploaded_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc)
        )

    async def mark_processing(self, document_id: UUID) -> Optional[Document]:
        """Enter processing, recording the start time and clearing any previous error."""
        return await self.update(
            document_id,
            status="processing",
            processing_started_at=datetime.now(timezone.utc),
            error_message=None,
        )

    async def mark_completed(self, document_id: UUID) -> Optional[Document]:
        return await self.update(
            document_id,
            status="completed",
            processed_at=datetime.now(timezone.utc),
        )

    async def mark_failed(self, document_id: UUID, error_message: str) -> Optional[Document]:
        return await self.update(
            document_id,
            status="failed",
            error_message=error_message,
        )

    async def update_page_count(self, document_id: UUID, page_count: int) -> bool:
        return await self.update(document_id, page_count=page_count) is not None
