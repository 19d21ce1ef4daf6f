"""Page text and page image access for source manuals, backed by pdfplumber.

The manual is loaded once (local path or http(s) URL) and kept open for the
lifetime of the source:

    async with PdfDocumentSource(file_path) as source:
        text = await source.get_full_text()
        image = await source.get_page_image(3, resolution=150)

pdfplumber is synchronous, so page work runs in a worker thread.
"""

import asyncio
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Protocol

import httpx
import pdfplumber

from manual_kb.core.exceptions import ExtractionError
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DocumentSource(Protocol):
    async def get_page_count(self) -> int:
        ...

    async def get_page_text(self, page_number: int) -> str:
        ...

    async def get_page_image(self, page_number: int, resolution: int):
        ...

    async def get_full_text(self) -> str:
        ...


class PdfDocumentSource:
    """DocumentSource over a PDF file. Page numbers are 1-indexed."""

    def __init__(self, document_url: str, download_timeout: float = 60.0):
        self.document_url = document_url
        self.download_timeout = download_timeout
        self._pdf: Optional[pdfplumber.PDF] = None

    async def __aenter__(self) -> "PdfDocumentSource":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def open(self) -> None:
        if self._pdf is not None:
            return
        try:
            pdf_bytes = await self._load_pdf(self.document_url)
            self._pdf = await asyncio.to_thread(pdfplumber.open, BytesIO(pdf_bytes))
        except ExtractionError:
            raise
        except Exception as e:
            LOGGER.error(
                f"Failed to open document: {e}",
                extra={"document_url": self.document_url, "error_type": type(e).__name__},
            )
            raise ExtractionError(f"Failed to open document {self.document_url}: {e}", original_error=e) from e

        LOGGER.info(
            f"Opened document with {len(self._pdf.pages)} pages",
            extra={"document_url": self.document_url, "total_pages": len(self._pdf.pages)},
        )

    def close(self) -> None:
        if self._pdf is not None:
            self._pdf.close()
            self._pdf = None

    async def _load_pdf(self, document_url: str) -> bytes:
        """Load PDF bytes from URL or local path."""
        if document_url.startswith(("http://", "https://")):
            LOGGER.debug("Downloading PDF from URL", extra={"url": document_url, "source": "remote"})
            async with httpx.AsyncClient(timeout=self.download_timeout) as client:
                response = await client.get(document_url)
                response.raise_for_status()
                return response.content

        path = Path(document_url)
        if not path.exists():
            raise ExtractionError(f"PDF file not found: {document_url}")
        return await asyncio.to_thread(path.read_bytes)

    def _require_pdf(self) -> pdfplumber.PDF:
        if self._pdf is None:
            raise ExtractionError("Document source is not open")
        return self._pdf

    def _page(self, page_number: int):
        pdf = self._require_pdf()
        if page_number < 1 or page_number > len(pdf.pages):
            raise ExtractionError(
                f"Page {page_number} out of range (document has {len(pdf.pages)} pages)"
            )
        return pdf.pages[page_number - 1]

    async def get_page_count(self) -> int:
        return len(self._require_pdf().pages)

    async def get_page_text(self, page_number: int) -> str:
        """Plain text of one page; empty string when the page has no text layer."""
        page = self._page(page_number)
        try:
            return await asyncio.to_thread(lambda: page.extract_text() or "")
        except Exception as e:
            raise ExtractionError(
                f"Failed to extract text from page {page_number}: {e}", original_error=e
            ) from e

    async def get_page_image(self, page_number: int, resolution: int = 150):
        """Rasterize one page to a PIL image."""
        page = self._page(page_number)
        try:
            page_image = await asyncio.to_thread(page.to_image, resolution=resolution)
            return page_image.original
        except Exception as e:
            raise ExtractionError(
                f"Failed to render page {page_number}: {e}", original_error=e
            ) from e

    async def get_full_text(self) -> str:
        """All page texts joined in page order."""
        page_count = await self.get_page_count()
        texts: List[str] = []
        for page_number in range(1, page_count + 1):
            texts.append(await self.get_page_text(page_number))

        full_text = "\n".join(texts)
        LOGGER.info(
            f"Extracted {len(full_text)} characters of text",
            extra={"document_url": self.document_url, "total_pages": page_count},
        )
        return full_text
