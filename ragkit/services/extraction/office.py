"""Office document extractors: ``file:docx``, ``file:pptx``, ``file:xlsx``.

Each parser library is optional (``pip install "ragkit[office]"``) and is
imported when the extractor is constructed.  Parsing is CPU-bound and runs
in a worker thread.
"""

from __future__ import annotations

import asyncio
import csv
import io
from typing import Any

from ragkit.models.assets import Asset, ExtractedTextItem, ExtractionResult
from ragkit.services.extraction._shared import cap_text, matches_format, single_text
from ragkit.services.extraction.base import AssetExtractor, ExtractionContext
from ragkit.services.extraction.fetch import get_asset_bytes
from ragkit.utils.errors import ExtractionError, MissingDependencyError

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPTX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_OFFICE_HINT = 'pip install "ragkit[office]"'


async def _parse(fn: Any, data: bytes, fmt: str) -> Any:
    try:
        return await asyncio.to_thread(fn, data)
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionError(f"Could not parse {fmt} file: {exc}", kind="parse") from exc


class DocxExtractor(AssetExtractor):
    """Paragraph and table-cell text from Word documents (python-docx)."""

    name = "file:docx"

    def __init__(self) -> None:
        try:
            import docx
        except ImportError as exc:
            raise MissingDependencyError("python-docx", _OFFICE_HINT, self.name) from exc
        self._docx = docx

    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        return (
            asset.kind == "file"
            and ctx.asset_processing.file.docx.enabled
            and matches_format(asset, "docx", DOCX_MEDIA_TYPE)
        )

    def _read(self, data: bytes) -> str:
        document = self._docx.Document(io.BytesIO(data))
        lines = [p.text.strip() for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    lines.append(" | ".join(cells))
        return "\n".join(lines)

    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        cfg = ctx.asset_processing.file.docx
        max_bytes = min(cfg.max_bytes, ctx.asset_processing.fetch.max_bytes)
        data, _, _ = await get_asset_bytes(asset, ctx, max_bytes, default_media_type=DOCX_MEDIA_TYPE)
        text = (await _parse(self._read, data, "docx")).strip()
        if len(text) < cfg.min_chars:
            return ExtractionResult()
        return single_text("docx", cap_text(text, cfg.max_output_chars))


class PptxExtractor(AssetExtractor):
    """One ``slide-{n}`` item per non-empty slide (python-pptx).

    ``max_output_chars`` is a running budget shared by all slides.
    """

    name = "file:pptx"

    def __init__(self) -> None:
        try:
            import pptx
        except ImportError as exc:
            raise MissingDependencyError("python-pptx", _OFFICE_HINT, self.name) from exc
        self._pptx = pptx

    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        return (
            asset.kind == "file"
            and ctx.asset_processing.file.pptx.enabled
            and matches_format(asset, "pptx", PPTX_MEDIA_TYPE)
        )

    def _read(self, data: bytes) -> list[tuple[int, str]]:
        presentation = self._pptx.Presentation(io.BytesIO(data))
        slides: list[tuple[int, str]] = []
        for number, slide in enumerate(presentation.slides, start=1):
            parts: list[str] = []
            for shape in slide.shapes:
                if not shape.has_text_frame:
                    continue
                for paragraph in shape.text_frame.paragraphs:
                    text = " ".join("".join(run.text for run in paragraph.runs).split())
                    if text:
                        parts.append(text)
            slides.append((number, " ".join(parts).strip()))
        return slides

    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        cfg = ctx.asset_processing.file.pptx
        max_bytes = min(cfg.max_bytes, ctx.asset_processing.fetch.max_bytes)
        data, _, _ = await get_asset_bytes(asset, ctx, max_bytes, default_media_type=PPTX_MEDIA_TYPE)
        slides = await _parse(self._read, data, "pptx")

        items: list[ExtractedTextItem] = []
        total = 0
        for number, slide_text in slides:
            if total >= cfg.max_output_chars:
                break
            if not slide_text:
                continue
            capped = cap_text(slide_text, cfg.max_output_chars - total)
            if not capped:
                continue
            items.append(ExtractedTextItem(label=f"slide-{number}", content=capped))
            total += len(capped)

        if total < cfg.min_chars:
            return ExtractionResult()
        return ExtractionResult(texts=items, diagnostics={"slides": len(slides)})


class XlsxExtractor(AssetExtractor):
    """Each sheet rendered as ``# Sheet: {name}`` followed by its CSV (openpyxl)."""

    name = "file:xlsx"

    def __init__(self) -> None:
        try:
            import openpyxl
        except ImportError as exc:
            raise MissingDependencyError("openpyxl", _OFFICE_HINT, self.name) from exc
        self._openpyxl = openpyxl

    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        return (
            asset.kind == "file"
            and ctx.asset_processing.file.xlsx.enabled
            and matches_format(asset, "xlsx", XLSX_MEDIA_TYPE)
        )

    def _read(self, data: bytes, max_output_chars: int) -> str:
        workbook = self._openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        parts: list[str] = []
        total = 0
        try:
            for sheet in workbook.worksheets:
                if total >= max_output_chars:
                    break
                buf = io.StringIO()
                writer = csv.writer(buf, lineterminator="\n")
                for row in sheet.iter_rows(values_only=True):
                    values = ["" if v is None else str(v) for v in row]
                    if any(values):
                        writer.writerow(values)
                csv_text = buf.getvalue().strip()
                if not csv_text:
                    continue
                part = f"# Sheet: {sheet.title}\n\n{csv_text}"
                parts.append(part)
                total += len(part) + 2
        finally:
            workbook.close()
        return "\n\n".join(parts)

    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        cfg = ctx.asset_processing.file.xlsx
        max_bytes = min(cfg.max_bytes, ctx.asset_processing.fetch.max_bytes)
        data, _, _ = await get_asset_bytes(asset, ctx, max_bytes, default_media_type=XLSX_MEDIA_TYPE)
        text = await _parse(lambda d: self._read(d, cfg.max_output_chars), data, "xlsx")
        text = cap_text(text, cfg.max_output_chars).strip()
        if len(text) < cfg.min_chars:
            return ExtractionResult()
        return single_text("xlsx", text)
