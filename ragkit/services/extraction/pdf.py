"""PDF extractors.

``pdf:text-layer`` reads the embedded text layer with PyMuPDF; it is cheap
and local, but scanned PDFs have no text layer, so it yields nothing for
them and the next extractor is tried.  ``pdf:llm`` sends the PDF to an
OpenAI chat model as a file part and is disabled by default.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any

import openai
import structlog

from ragkit.models.assets import Asset, ExtractedTextItem, ExtractionResult
from ragkit.services.extraction._shared import cap_text, normalize_media_type
from ragkit.services.extraction.base import AssetExtractor, ExtractionContext
from ragkit.services.extraction.fetch import get_asset_bytes
from ragkit.utils.concurrency import run_with_timeout
from ragkit.utils.errors import ExtractionError, MissingDependencyError

logger = structlog.get_logger(logger_name=__name__)

PDF_MEDIA_TYPE = "application/pdf"


class PdfTextLayerExtractor(AssetExtractor):
    """Extract the built-in text layer of a PDF with PyMuPDF."""

    name = "pdf:text-layer"

    def __init__(self) -> None:
        try:
            import fitz  # PyMuPDF
        except ImportError as exc:
            raise MissingDependencyError(
                package="PyMuPDF",
                install_hint='pip install "ragkit[pdf]"',
                component=self.name,
            ) from exc
        self._fitz = fitz

    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        return asset.kind == "pdf" and ctx.asset_processing.pdf.text_layer.enabled

    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        cfg = ctx.asset_processing.pdf.text_layer
        max_bytes = min(cfg.max_bytes, ctx.asset_processing.fetch.max_bytes)
        data, _, _ = await get_asset_bytes(asset, ctx, max_bytes, default_media_type=PDF_MEDIA_TYPE)

        text, pages = await asyncio.to_thread(self._read_pages, data, cfg.max_output_chars)
        text = text.strip()
        if len(text) < cfg.min_chars:
            logger.debug("pdf_text_layer_too_short", asset_id=asset.asset_id, chars=len(text))
            return ExtractionResult(diagnostics={"pages": pages, "chars": len(text)})

        content = cap_text(text, cfg.max_output_chars)
        return ExtractionResult(
            texts=[ExtractedTextItem(label="text-layer", content=content)],
            diagnostics={"pages": pages, "chars": len(content)},
        )

    def _read_pages(self, data: bytes, max_output_chars: int) -> tuple[str, int]:
        """Join page texts with blank lines, stopping once the output cap is reached."""
        try:
            doc = self._fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(f"Could not open PDF: {exc}", kind="parse") from exc

        parts: list[str] = []
        total = 0
        try:
            page_count = len(doc)
            for page in doc:
                page_text = " ".join(page.get_text("text").split())
                if not page_text:
                    continue
                parts.append(page_text)
                total += len(page_text) + 2
                if total >= max_output_chars:
                    break
        finally:
            doc.close()
        return "\n\n".join(parts), page_count


class PdfLlmExtractor(AssetExtractor):
    """Extract PDF text by asking an OpenAI chat model to transcribe it.

    Parameters
    ----------
    client:
        Pre-built ``AsyncOpenAI`` client.  When omitted, one is created on
        first use from *api_key* / *base_url* (or the ``OPENAI_*``
        environment variables).
    """

    name = "pdf:llm"

    def __init__(
        self,
        client: openai.AsyncOpenAI | None = None,
        api_key: str = "",
        base_url: str = "",
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._base_url = base_url

    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        return asset.kind == "pdf" and ctx.asset_processing.pdf.llm_extraction.enabled

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = openai.AsyncOpenAI(**kwargs)
        return self._client

    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        cfg = ctx.asset_processing.pdf.llm_extraction
        max_bytes = min(cfg.max_bytes, ctx.asset_processing.fetch.max_bytes)
        data, media_type, filename = await get_asset_bytes(
            asset, ctx, max_bytes, default_media_type=PDF_MEDIA_TYPE
        )

        encoded = base64.b64encode(data).decode("ascii")
        mt = normalize_media_type(media_type) or PDF_MEDIA_TYPE
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": cfg.prompt},
                    {
                        "type": "file",
                        "file": {
                            "filename": filename or f"{asset.asset_id}.pdf",
                            "file_data": f"data:{mt};base64,{encoded}",
                        },
                    },
                ],
            }
        ]

        try:
            response = await run_with_timeout(
                self._get_client().chat.completions.create(model=cfg.model, messages=messages),
                cfg.timeout_s,
                lambda: ExtractionError(
                    f"PDF LLM extraction timed out after {cfg.timeout_s}s",
                    provider_name="openai",
                    kind="timeout",
                ),
            )
        except openai.APIError as exc:
            raise ExtractionError(
                f"PDF LLM extraction failed: {exc}", provider_name="openai", kind="parse"
            ) from exc

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not text:
            return ExtractionResult(diagnostics={"model": cfg.model})

        return ExtractionResult(
            texts=[ExtractedTextItem(label="fulltext", content=cap_text(text, cfg.max_output_chars))],
            diagnostics={"model": cfg.model},
        )
