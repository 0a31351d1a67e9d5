"""Ordered list of the built-in extractors.

Extractors are tried in list order, so cheaper local parsers come before
model-backed ones of the same asset kind.
"""

from __future__ import annotations

from collections.abc import Callable

import openai
import structlog

from ragkit.interfaces.transcription_provider import ITranscriptionProvider
from ragkit.services.extraction.audio import AudioTranscribeExtractor
from ragkit.services.extraction.base import AssetExtractor
from ragkit.services.extraction.epub import EpubExtractor
from ragkit.services.extraction.file_text import FileTextExtractor
from ragkit.services.extraction.office import DocxExtractor, PptxExtractor, XlsxExtractor
from ragkit.services.extraction.pdf import PdfLlmExtractor, PdfTextLayerExtractor
from ragkit.utils.errors import MissingDependencyError

logger = structlog.get_logger(logger_name=__name__)


def default_extractors(
    openai_client: openai.AsyncOpenAI | None = None,
    openai_api_key: str = "",
    openai_base_url: str = "",
    transcriber: ITranscriptionProvider | None = None,
) -> list[AssetExtractor]:
    """Build the default extractor chain.

    Order: ``pdf:text-layer``, ``pdf:llm``, ``audio:transcribe``,
    ``file:text``, ``file:docx``, ``file:pptx``, ``file:xlsx``,
    ``file:epub``.  Extractors whose optional library is not installed
    are left out (logged at debug level); construct them directly to get
    the :class:`MissingDependencyError` with its install command.
    """
    factories: list[Callable[[], AssetExtractor]] = [
        PdfTextLayerExtractor,
        lambda: PdfLlmExtractor(client=openai_client, api_key=openai_api_key, base_url=openai_base_url),
        lambda: AudioTranscribeExtractor(transcriber=transcriber),
        FileTextExtractor,
        DocxExtractor,
        PptxExtractor,
        XlsxExtractor,
        EpubExtractor,
    ]

    extractors: list[AssetExtractor] = []
    for factory in factories:
        try:
            extractors.append(factory())
        except MissingDependencyError as exc:
            logger.debug("extractor_unavailable", component=exc.provider_name, package=exc.package)
    return extractors
