"""EPUB extractor (``file:epub``) built on ebooklib and BeautifulSoup."""

from __future__ import annotations

import asyncio
import os
import tempfile

from ragkit.models.assets import Asset, ExtractedTextItem, ExtractionResult
from ragkit.services.extraction._shared import cap_text, matches_format
from ragkit.services.extraction.base import AssetExtractor, ExtractionContext
from ragkit.services.extraction.fetch import get_asset_bytes
from ragkit.services.extraction.file_text import strip_html
from ragkit.utils.errors import ExtractionError, MissingDependencyError

EPUB_MEDIA_TYPE = "application/epub+zip"


class EpubExtractor(AssetExtractor):
    """One ``chapter-{n}`` item per document in the EPUB spine.

    Chapters are read in manifest order; the shared ``max_output_chars``
    budget stops reading once exhausted.
    """

    name = "file:epub"

    def __init__(self) -> None:
        try:
            import ebooklib
            from ebooklib import epub
        except ImportError as exc:
            raise MissingDependencyError("ebooklib", 'pip install "ragkit[epub]"', self.name) from exc
        self._ebooklib = ebooklib
        self._epub = epub

    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        return (
            asset.kind == "file"
            and ctx.asset_processing.file.epub.enabled
            and matches_format(asset, "epub", EPUB_MEDIA_TYPE)
        )

    def _read(self, data: bytes) -> list[str]:
        # ebooklib only reads from a path.
        fd, path = tempfile.mkstemp(suffix=".epub")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            book = self._epub.read_epub(path, options={"ignore_ncx": True})
        finally:
            os.unlink(path)

        chapters: list[str] = []
        for item in book.get_items_of_type(self._ebooklib.ITEM_DOCUMENT):
            html = item.get_content().decode("utf-8", errors="replace")
            text = strip_html(html)
            if text:
                chapters.append(text)
        return chapters

    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        cfg = ctx.asset_processing.file.epub
        max_bytes = min(cfg.max_bytes, ctx.asset_processing.fetch.max_bytes)
        data, _, _ = await get_asset_bytes(asset, ctx, max_bytes, default_media_type=EPUB_MEDIA_TYPE)
        try:
            chapters = await asyncio.to_thread(self._read, data)
        except Exception as exc:
            raise ExtractionError(f"Could not parse epub file: {exc}", kind="parse") from exc

        items: list[ExtractedTextItem] = []
        total = 0
        for number, chapter in enumerate(chapters, start=1):
            if total >= cfg.max_output_chars:
                break
            capped = cap_text(chapter, cfg.max_output_chars - total)
            if not capped:
                continue
            items.append(ExtractedTextItem(label=f"chapter-{number}", content=capped))
            total += len(capped)

        if total < cfg.min_chars:
            return ExtractionResult()
        return ExtractionResult(texts=items, diagnostics={"chapters": len(chapters)})
