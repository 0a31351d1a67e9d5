"""Small helpers shared by the built-in extractors."""

from __future__ import annotations

from ragkit.models.assets import Asset, ExtractedTextItem, ExtractionResult


def cap_text(text: str, max_chars: int) -> str:
    """Truncate *text* to *max_chars* characters, then strip trailing whitespace."""
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip()


def to_utf8(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def normalize_media_type(media_type: str | None) -> str | None:
    """``"Text/HTML; charset=utf-8"`` -> ``"text/html"``."""
    if not media_type:
        return None
    value = media_type.split(";", 1)[0].strip().lower()
    return value or None


def ext_from_filename(filename: str | None) -> str | None:
    if not filename or "." not in filename:
        return None
    ext = filename.rsplit(".", 1)[1].strip().lower()
    return ext or None


def asset_ext(asset: Asset) -> str | None:
    """Extension from the asset's filename, falling back to its URL path."""
    ext = ext_from_filename(asset.filename)
    if ext is None and asset.data.kind == "url":
        path = asset.data.url.split("?", 1)[0].split("#", 1)[0]
        ext = ext_from_filename(path.rsplit("/", 1)[-1])
    return ext


def matches_format(asset: Asset, ext: str, media_type: str) -> bool:
    return asset_ext(asset) == ext or normalize_media_type(asset.media_type) == media_type


def single_text(label: str, content: str, **diagnostics: object) -> ExtractionResult:
    return ExtractionResult(
        texts=[ExtractedTextItem(label=label, content=content)],
        diagnostics=dict(diagnostics),
    )
