"""Unit tests for PdfDocumentSource."""

from unittest.mock import MagicMock, patch

import pytest

from manual_kb.core.exceptions import ExtractionError
from manual_kb.services.document_source import PdfDocumentSource


def _fake_pdf(page_texts):
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        page.to_image.return_value = MagicMock(original=f"image-of-{text}")
        pages.append(page)
    pdf = MagicMock()
    pdf.pages = pages
    return pdf


class TestPdfDocumentSource:
    @pytest.fixture
    def pdf_path(self, tmp_path):
        path = tmp_path / "manual.pdf"
        path.write_bytes(b"%PDF-1.4 placeholder")
        return path

    @pytest.mark.asyncio
    async def test_full_text_joins_pages_in_order(self, pdf_path):
        pdf = _fake_pdf(["Page one", None, "Page three"])

        with patch("manual_kb.services.document_source.pdfplumber.open", return_value=pdf):
            async with PdfDocumentSource(str(pdf_path)) as source:
                assert await source.get_page_count() == 3
                assert await source.get_full_text() == "Page one\n\nPage three"

        pdf.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_page_image_renders_requested_page(self, pdf_path):
        pdf = _fake_pdf(["a", "b"])

        with patch("manual_kb.services.document_source.pdfplumber.open", return_value=pdf):
            async with PdfDocumentSource(str(pdf_path)) as source:
                image = await source.get_page_image(2, resolution=200)

        assert image == "image-of-b"
        pdf.pages[1].to_image.assert_called_once_with(resolution=200)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_number", [0, 3])
    async def test_out_of_range_page_raises(self, pdf_path, page_number):
        with patch("manual_kb.services.document_source.pdfplumber.open", return_value=_fake_pdf(["a", "b"])):
            async with PdfDocumentSource(str(pdf_path)) as source:
                with pytest.raises(ExtractionError):
                    await source.get_page_text(page_number)

    @pytest.mark.asyncio
    async def test_render_failure_raises_extraction_error(self, pdf_path):
        pdf = _fake_pdf(["a"])
        pdf.pages[0].to_image.side_effect = RuntimeError("bad xref")

        with patch("manual_kb.services.document_source.pdfplumber.open", return_value=pdf):
            async with PdfDocumentSource(str(pdf_path)) as source:
                with pytest.raises(ExtractionError):
                    await source.get_page_image(1)

    @pytest.mark.asyncio
    async def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ExtractionError):
            async with PdfDocumentSource(str(tmp_path / "missing.pdf")):
                pass

    @pytest.mark.asyncio
    async def test_unparseable_file_raises(self, tmp_path):
        path = tmp_path / "notes.pdf"
        path.write_bytes(b"this is not a pdf")

        with pytest.raises(ExtractionError):
            async with PdfDocumentSource(str(path)):
                pass

    @pytest.mark.asyncio
    async def test_reading_before_open_raises(self):
        with pytest.raises(ExtractionError):
            await PdfDocumentSource("manual.pdf").get_page_count()
