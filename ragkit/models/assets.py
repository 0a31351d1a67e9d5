"""Asset and extraction models.

An :class:`Asset` is a non-text input attached to an ingest call (a PDF, an
audio recording, an office file, an image).  Its payload is either inline
bytes or a URL fetched under the asset-processing fetch policy.  Extractors
turn assets into :class:`ExtractedTextItem` lists.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

AssetKind = Literal["pdf", "image", "audio", "video", "file"]


class BytesAssetData(BaseModel):
    """Inline asset payload."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["bytes"] = "bytes"
    content: bytes = Field(description="Raw asset bytes.")
    media_type: str = Field(description="MIME type, e.g. 'application/pdf'.")
    filename: str | None = Field(default=None, description="Original file name, if known.")


class UrlAssetData(BaseModel):
    """Asset payload fetched over HTTPS at extraction time."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["url"] = "url"
    url: str = Field(description="HTTPS URL of the asset.")
    media_type: str | None = Field(default=None, description="Expected MIME type, if known.")
    filename: str | None = Field(default=None, description="File name hint.")
    headers: dict[str, str] | None = Field(
        default=None,
        description="Extra request headers merged over the fetch config headers.",
    )


AssetData = Union[BytesAssetData, UrlAssetData]


class Asset(BaseModel):
    """A unit of non-text content attached to a document."""

    model_config = ConfigDict(frozen=True)

    asset_id: str = Field(description="Caller-provided id, unique within the document.")
    kind: AssetKind = Field(description="Broad asset category used for extractor routing.")
    data: AssetData = Field(discriminator="kind", description="Inline bytes or URL reference.")
    uri: str | None = Field(default=None, description="Canonical location of the asset, for provenance.")
    text: str | None = Field(default=None, description="Caption or alt text supplied by the caller.")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Asset-level metadata.")

    @property
    def media_type(self) -> str | None:
        return self.data.media_type

    @property
    def filename(self) -> str | None:
        return self.data.filename

    @property
    def resolved_uri(self) -> str | None:
        """The asset URI, falling back to the fetch URL for URL assets."""
        if self.uri:
            return self.uri
        if isinstance(self.data, UrlAssetData):
            return self.data.url
        return None


class ExtractedTextItem(BaseModel):
    """One text fragment produced from an asset."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(description="Fragment label, e.g. 'text-layer', 'slide-3', 'segment-0'.")
    content: str = Field(description="Extracted text.")
    time_range_sec: tuple[float, float] | None = Field(
        default=None,
        description="Start/end offsets in seconds for time-based media.",
    )


class ExtractionResult(BaseModel):
    """The output of one extractor run."""

    model_config = ConfigDict(frozen=True)

    texts: list[ExtractedTextItem] = Field(default_factory=list)
    diagnostics: dict[str, Any] = Field(
        default_factory=dict,
        description="Extractor-specific details (page count, model, segment count...).",
    )
