"""Audio transcription extractor (``audio:transcribe``)."""

from __future__ import annotations

import structlog

from ragkit.interfaces.transcription_provider import ITranscriptionProvider
from ragkit.models.assets import Asset, ExtractedTextItem, ExtractionResult
from ragkit.services.extraction._shared import ext_from_filename
from ragkit.services.extraction.base import AssetExtractor, ExtractionContext
from ragkit.services.extraction.fetch import get_asset_bytes
from ragkit.utils.concurrency import run_with_timeout
from ragkit.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_EXT_BY_MEDIA_TYPE = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
}


class AudioTranscribeExtractor(AssetExtractor):
    """Transcribe audio assets through an :class:`ITranscriptionProvider`.

    Segments become ``segment-{i}`` items carrying ``time_range_sec``; a
    response without segments becomes a single ``transcript`` item.
    """

    name = "audio:transcribe"

    def __init__(self, transcriber: ITranscriptionProvider | None = None) -> None:
        self._transcriber = transcriber

    def _get_transcriber(self) -> ITranscriptionProvider:
        if self._transcriber is None:
            from ragkit.providers.transcription.whisper_api_provider import WhisperAPIProvider

            self._transcriber = WhisperAPIProvider()
        return self._transcriber

    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        return asset.kind == "audio" and ctx.asset_processing.audio.transcription.enabled

    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        cfg = ctx.asset_processing.audio.transcription
        max_bytes = min(cfg.max_bytes, ctx.asset_processing.fetch.max_bytes)
        data, media_type, filename = await get_asset_bytes(
            asset, ctx, max_bytes, default_media_type="audio/mpeg"
        )
        if not filename or ext_from_filename(filename) is None:
            filename = f"{asset.asset_id}.{_EXT_BY_MEDIA_TYPE.get(media_type, 'mp3')}"

        transcriber = self._get_transcriber()
        result = await run_with_timeout(
            transcriber.transcribe(data, filename, cfg.model),
            cfg.timeout_s,
            lambda: ExtractionError(
                f"Transcription timed out after {cfg.timeout_s}s",
                provider_name=transcriber.get_provider_name(),
                kind="timeout",
            ),
        )

        items = [
            ExtractedTextItem(
                label=f"segment-{i}",
                content=seg.text.strip(),
                time_range_sec=(seg.start, seg.end),
            )
            for i, seg in enumerate(result.segments)
            if seg.text.strip()
        ]
        diagnostics = {
            "model": cfg.model,
            "segments": len(items),
            "seconds": result.duration_seconds,
        }
        if items:
            return ExtractionResult(texts=items, diagnostics=diagnostics)

        text = result.text.strip()
        if not text:
            return ExtractionResult(diagnostics=diagnostics)
        return ExtractionResult(
            texts=[ExtractedTextItem(label="transcript", content=text)],
            diagnostics=diagnostics,
        )
