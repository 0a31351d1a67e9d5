"""Unit tests for the optional-library extractors: PDF text layer, Office and EPUB.

Each test builds a small document in memory with the same library the
extractor parses it with, and is skipped when that extra is not installed.
"""

from __future__ import annotations

import io

import pytest

from ragkit.models.assets import Asset
from ragkit.models.config import AssetProcessingConfig
from ragkit.services.extraction.base import ExtractionContext
from ragkit.utils.errors import ExtractionError


def _file_asset(kind: str, content: bytes, media_type: str, filename: str) -> Asset:
    return Asset.model_validate(
        {
            "asset_id": filename,
            "kind": kind,
            "data": {"kind": "bytes", "content": content, "media_type": media_type, "filename": filename},
        }
    )


def _ctx(overrides: dict | None = None) -> ExtractionContext:
    return ExtractionContext(asset_processing=AssetProcessingConfig.model_validate(overrides or {}))


# ======================================================================
# pdf:text-layer
# ======================================================================


class TestPdfTextLayerExtractor:
    @staticmethod
    def _pdf(*pages: str) -> bytes:
        fitz = pytest.importorskip("fitz")
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            page.insert_text((72, 72), text)
        data = doc.tobytes()
        doc.close()
        return data

    @pytest.mark.asyncio
    async def test_reads_every_page(self) -> None:
        from ragkit.services.extraction.pdf import PdfTextLayerExtractor

        asset = _file_asset("pdf", self._pdf("First page text", "Second page text"), "application/pdf", "a.pdf")
        ctx = _ctx({"pdf": {"text_layer": {"min_chars": 0}}})
        result = await PdfTextLayerExtractor().extract(asset, ctx)

        assert result.texts[0].label == "text-layer"
        assert result.texts[0].content == "First page text\n\nSecond page text"
        assert result.diagnostics["pages"] == 2

    @pytest.mark.asyncio
    async def test_short_text_layer_yields_nothing(self) -> None:
        from ragkit.services.extraction.pdf import PdfTextLayerExtractor

        asset = _file_asset("pdf", self._pdf("Tiny"), "application/pdf", "a.pdf")
        result = await PdfTextLayerExtractor().extract(asset, _ctx())
        assert result.texts == []
        assert result.diagnostics == {"pages": 1, "chars": 4}

    @pytest.mark.asyncio
    async def test_corrupt_pdf(self) -> None:
        pytest.importorskip("fitz")
        from ragkit.services.extraction.pdf import PdfTextLayerExtractor

        asset = _file_asset("pdf", b"not a pdf at all", "application/pdf", "bad.pdf")
        with pytest.raises(ExtractionError) as exc_info:
            await PdfTextLayerExtractor().extract(asset, _ctx())
        assert exc_info.value.kind == "parse"


# ======================================================================
# Office formats
# ======================================================================


class TestOfficeExtractors:
    @pytest.mark.asyncio
    async def test_docx_paragraphs_and_tables(self) -> None:
        docx = pytest.importorskip("docx")
        from ragkit.services.extraction.office import DOCX_MEDIA_TYPE, DocxExtractor

        document = docx.Document()
        document.add_paragraph("Quarterly plan")
        document.add_paragraph("   ")
        table = document.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "item"
        table.rows[0].cells[1].text = "owner"
        buf = io.BytesIO()
        document.save(buf)

        asset = _file_asset("file", buf.getvalue(), DOCX_MEDIA_TYPE, "plan.docx")
        extractor = DocxExtractor()
        ctx = _ctx({"file": {"docx": {"min_chars": 0}}})
        assert extractor.supports(asset, ctx)

        result = await extractor.extract(asset, ctx)
        assert result.texts[0].label == "docx"
        assert result.texts[0].content == "Quarterly plan\nitem | owner"

    @pytest.mark.asyncio
    async def test_docx_parse_failure(self) -> None:
        pytest.importorskip("docx")
        from ragkit.services.extraction.office import DOCX_MEDIA_TYPE, DocxExtractor

        asset = _file_asset("file", b"garbage", DOCX_MEDIA_TYPE, "bad.docx")
        with pytest.raises(ExtractionError, match="Could not parse docx"):
            await DocxExtractor().extract(asset, _ctx())

    @pytest.mark.asyncio
    async def test_pptx_one_item_per_slide(self) -> None:
        pptx = pytest.importorskip("pptx")
        from ragkit.services.extraction.office import PPTX_MEDIA_TYPE, PptxExtractor

        presentation = pptx.Presentation()
        slide = presentation.slides.add_slide(presentation.slide_layouts[5])
        slide.shapes.title.text = "Roadmap   for 2026"
        presentation.slides.add_slide(presentation.slide_layouts[6])
        buf = io.BytesIO()
        presentation.save(buf)

        asset = _file_asset("file", buf.getvalue(), PPTX_MEDIA_TYPE, "deck.pptx")
        result = await PptxExtractor().extract(asset, _ctx({"file": {"pptx": {"min_chars": 0}}}))

        assert [(t.label, t.content) for t in result.texts] == [("slide-1", "Roadmap for 2026")]
        assert result.diagnostics == {"slides": 2}

    @pytest.mark.asyncio
    async def test_xlsx_sheets_as_csv(self) -> None:
        openpyxl = pytest.importorskip("openpyxl")
        from ragkit.services.extraction.office import XLSX_MEDIA_TYPE, XlsxExtractor

        workbook = openpyxl.Workbook()
        sheet = workbook.active
        sheet.title = "Prices"
        sheet.append(["item", "price"])
        sheet.append(["tea", 3])
        workbook.create_sheet("Empty")
        buf = io.BytesIO()
        workbook.save(buf)

        asset = _file_asset("file", buf.getvalue(), XLSX_MEDIA_TYPE, "prices.xlsx")
        result = await XlsxExtractor().extract(asset, _ctx({"file": {"xlsx": {"min_chars": 0}}}))

        assert result.texts[0].label == "xlsx"
        assert result.texts[0].content == "# Sheet: Prices\n\nitem,price\ntea,3"

    def test_supports_by_extension(self) -> None:
        pytest.importorskip("openpyxl")
        from ragkit.services.extraction.office import XlsxExtractor

        asset = _file_asset("file", b"", "application/octet-stream", "prices.xlsx")
        assert XlsxExtractor().supports(asset, _ctx())
        assert not XlsxExtractor().supports(asset, _ctx({"file": {"xlsx": {"enabled": False}}}))


# ======================================================================
# EPUB
# ======================================================================


class TestEpubExtractor:
    @pytest.mark.asyncio
    async def test_chapters_in_order(self, tmp_path) -> None:
        pytest.importorskip("ebooklib")
        from ebooklib import epub

        from ragkit.services.extraction.epub import EPUB_MEDIA_TYPE, EpubExtractor

        book = epub.EpubBook()
        book.set_identifier("ragkit-test")
        book.set_title("Field Guide")
        book.set_language("en")
        chapters = []
        for n, body in enumerate(["Owls hunt at night.", "Herons wade in shallow water."], start=1):
            chapter = epub.EpubHtml(title=f"Chapter {n}", file_name=f"ch{n}.xhtml", lang="en")
            chapter.content = f"<html><body><h1>Chapter {n}</h1><p>{body}</p></body></html>"
            book.add_item(chapter)
            chapters.append(chapter)
        book.toc = chapters
        book.spine = ["nav", *chapters]
        book.add_item(epub.EpubNcx())
        book.add_item(epub.EpubNav())
        path = tmp_path / "guide.epub"
        epub.write_epub(str(path), book)

        asset = _file_asset("file", path.read_bytes(), EPUB_MEDIA_TYPE, "guide.epub")
        result = await EpubExtractor().extract(asset, _ctx({"file": {"epub": {"min_chars": 0}}}))

        contents = [t.content for t in result.texts]
        assert any("Owls hunt at night." in c for c in contents)
        assert any("Herons wade in shallow water." in c for c in contents)
        assert all(t.label.startswith("chapter-") for t in result.texts)
