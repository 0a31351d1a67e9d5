"""Run the extractor chain for one asset and apply the asset policies.

The first supporting extractor that returns non-empty text wins; one that
returns nothing falls through to the next.  The outcome is either text
(with the winning extractor's name) or a single :class:`IngestWarning`.
Under the ``fail`` policies the error is raised instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from ragkit.models.assets import Asset, ExtractedTextItem
from ragkit.models.results import (
    ASSET_PROCESSING_ERROR,
    ASSET_SKIPPED_EXTRACTION_DISABLED,
    ASSET_SKIPPED_EXTRACTION_EMPTY,
    ASSET_SKIPPED_IMAGE_NO_CAPTION,
    ASSET_SKIPPED_PDF_LLM_EXTRACTION_DISABLED,
    ASSET_SKIPPED_UNSUPPORTED_KIND,
    AssetPlan,
    IngestWarning,
)
from ragkit.services.extraction.base import AssetExtractor, ExtractionContext
from ragkit.utils.errors import UnsupportedAssetError

logger = structlog.get_logger(logger_name=__name__)

IMAGE_CAPTION_EXTRACTOR = "image:caption"


@dataclass
class AssetOutcome:
    """Result of extracting one asset."""

    asset: Asset
    texts: list[ExtractedTextItem] = field(default_factory=list)
    extractor: str | None = None
    warning: IngestWarning | None = None


def _warning(asset: Asset, code: str, message: str, stage: str | None = None) -> IngestWarning:
    logger.warning(
        "asset_skipped",
        code=code,
        asset_id=asset.asset_id,
        asset_kind=asset.kind,
        stage=stage,
    )
    return IngestWarning(
        code=code,
        message=message,
        asset_id=asset.asset_id,
        asset_kind=asset.kind,
        asset_uri=asset.resolved_uri,
        asset_media_type=asset.media_type,
        stage=stage,
    )


def _caption_or_warning(asset: Asset) -> AssetOutcome:
    caption = (asset.text or "").strip()
    if caption:
        return AssetOutcome(
            asset=asset,
            texts=[ExtractedTextItem(label="caption", content=caption)],
            extractor=IMAGE_CAPTION_EXTRACTOR,
        )
    return AssetOutcome(
        asset=asset,
        warning=_warning(
            asset,
            ASSET_SKIPPED_IMAGE_NO_CAPTION,
            "Image skipped because no extractor produced text and asset.text (caption/alt) is empty.",
        ),
    )


def _skip_reason(asset: Asset, ctx: ExtractionContext) -> tuple[str, str]:
    cfg = ctx.asset_processing
    if asset.kind == "pdf" and not cfg.extraction_enabled("pdf"):
        return (
            ASSET_SKIPPED_PDF_LLM_EXTRACTION_DISABLED,
            "PDF skipped because both asset_processing.pdf.text_layer and "
            "asset_processing.pdf.llm_extraction are disabled.",
        )
    if not cfg.extraction_enabled(asset.kind):
        return (
            ASSET_SKIPPED_EXTRACTION_DISABLED,
            f'Asset skipped because extraction for kind "{asset.kind}" is disabled.',
        )
    return (
        ASSET_SKIPPED_UNSUPPORTED_KIND,
        f'Asset skipped because no extractor supports kind "{asset.kind}" ({asset.media_type}).',
    )


def _no_extractor(asset: Asset, ctx: ExtractionContext) -> AssetOutcome:
    code, message = _skip_reason(asset, ctx)
    if ctx.asset_processing.on_unsupported_asset == "fail":
        raise UnsupportedAssetError(f"{message} (asset_id={asset.asset_id})")
    return AssetOutcome(asset=asset, warning=_warning(asset, code, message))


def plan_asset(
    asset: Asset,
    extractors: list[AssetExtractor],
    ctx: ExtractionContext,
) -> AssetPlan:
    """Report which extractors would run for *asset*, without running any.

    A dry run never raises for unsupported assets; the skip it would
    produce is reported as the plan's warning instead.
    """
    names = [e.name for e in extractors if e.supports(asset, ctx)]
    if not names and asset.kind == "image" and (asset.text or "").strip():
        names = [IMAGE_CAPTION_EXTRACTOR]
    warning = None
    if not names:
        if asset.kind == "image":
            code = ASSET_SKIPPED_IMAGE_NO_CAPTION
            message = "Image would be skipped: no extractor applies and asset.text is empty."
        else:
            code, message = _skip_reason(asset, ctx)
        warning = IngestWarning(
            code=code,
            message=message,
            asset_id=asset.asset_id,
            asset_kind=asset.kind,
            asset_uri=asset.resolved_uri,
            asset_media_type=asset.media_type,
        )
    return AssetPlan(asset_id=asset.asset_id, asset_kind=asset.kind, extractors=names, warning=warning)


async def extract_asset(
    asset: Asset,
    extractors: list[AssetExtractor],
    ctx: ExtractionContext,
) -> AssetOutcome:
    """Extract text from *asset* with the first extractor that yields any.

    Raises
    ------
    UnsupportedAssetError
        No extractor applies and ``on_unsupported_asset`` is ``"fail"``.
    Exception
        Whatever the extractor raised, when ``on_error`` is ``"fail"``.
    """
    candidates = [e for e in extractors if e.supports(asset, ctx)]
    if not candidates:
        if asset.kind == "image":
            return _caption_or_warning(asset)
        return _no_extractor(asset, ctx)

    for extractor in candidates:
        try:
            result = await extractor.extract(asset, ctx)
        except Exception as exc:
            if ctx.asset_processing.on_error == "fail":
                raise
            return AssetOutcome(
                asset=asset,
                warning=_warning(
                    asset,
                    ASSET_PROCESSING_ERROR,
                    f'{extractor.name} failed but was skipped due to on_error="skip": {exc}',
                    stage="extract",
                ),
            )
        texts = [item for item in result.texts if item.content.strip()]
        if texts:
            logger.debug(
                "asset_extracted",
                asset_id=asset.asset_id,
                extractor=extractor.name,
                items=len(texts),
                diagnostics=result.diagnostics,
            )
            return AssetOutcome(asset=asset, texts=texts, extractor=extractor.name)

    if asset.kind == "image":
        return _caption_or_warning(asset)
    if asset.kind == "pdf" and not ctx.asset_processing.pdf.llm_extraction.enabled:
        return AssetOutcome(
            asset=asset,
            warning=_warning(
                asset,
                ASSET_SKIPPED_PDF_LLM_EXTRACTION_DISABLED,
                "PDF text layer produced no usable text (scanned or image-only PDF?). "
                "Enable asset_processing.pdf.llm_extraction to extract it with a model.",
            ),
        )
    return AssetOutcome(
        asset=asset,
        warning=_warning(
            asset,
            ASSET_SKIPPED_EXTRACTION_EMPTY,
            f"Extraction returned no text ({', '.join(e.name for e in candidates)}).",
        ),
    )
