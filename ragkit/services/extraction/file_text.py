"""Plain-text file extractor (``file:text``).

Handles text-ish files: any ``text/*`` media type, JSON, XML, XHTML, and
the usual text extensions.  HTML is reduced to visible text with
BeautifulSoup.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from ragkit.models.assets import Asset, ExtractionResult
from ragkit.services.extraction._shared import (
    asset_ext,
    cap_text,
    normalize_media_type,
    single_text,
    to_utf8,
)
from ragkit.services.extraction.base import AssetExtractor, ExtractionContext
from ragkit.services.extraction.fetch import get_asset_bytes

_TEXT_MEDIA_TYPES = {
    "application/json",
    "application/xml",
    "application/xhtml+xml",
    "application/yaml",
    "application/x-yaml",
}
_TEXT_EXTENSIONS = {"txt", "md", "markdown", "html", "htm", "json", "csv", "log", "xml", "yaml", "yml"}
_HTML_MEDIA_TYPES = {"text/html", "application/xhtml+xml"}

_MULTI_NEWLINE = re.compile(r"\n{3,}")
_MULTI_SPACE = re.compile(r"[ \t]{2,}")


def is_textish(media_type: str | None, ext: str | None) -> bool:
    mt = normalize_media_type(media_type)
    if mt and (mt.startswith("text/") or mt in _TEXT_MEDIA_TYPES):
        return True
    return ext in _TEXT_EXTENSIONS


def strip_html(html: str) -> str:
    """Visible text of an HTML document, one block per line."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator="\n")
    text = _MULTI_SPACE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.splitlines())
    return _MULTI_NEWLINE.sub("\n\n", text).strip()


class FileTextExtractor(AssetExtractor):
    name = "file:text"

    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        if asset.kind != "file" or not ctx.asset_processing.file.text.enabled:
            return False
        return is_textish(asset.media_type, asset_ext(asset))

    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        cfg = ctx.asset_processing.file.text
        max_bytes = min(cfg.max_bytes, ctx.asset_processing.fetch.max_bytes)
        data, media_type, _ = await get_asset_bytes(asset, ctx, max_bytes, default_media_type="text/plain")

        mt = normalize_media_type(media_type)
        ext = asset_ext(asset)
        text = to_utf8(data)
        if mt in _HTML_MEDIA_TYPES or ext in ("html", "htm"):
            text = strip_html(text)
        text = text.strip()

        if len(text) < cfg.min_chars:
            return ExtractionResult()
        return single_text("text", cap_text(text, cfg.max_output_chars), media_type=mt, ext=ext)
