"""Guarded retrieval of asset bytes.

URL assets are fetched with httpx under the asset-processing fetch policy:

* only ``https://`` URLs;
* loopback, unspecified and private-network hosts are refused;
* an optional host allowlist (exact host or subdomain match);
* a per-phase request timeout, plus the same limit on the whole download;
* a byte ceiling checked against the declared ``content-length`` and again
  while the body streams in.

Oversized payloads raise :class:`ExtractionError` with ``kind="size"``;
they are never truncated.
"""

from __future__ import annotations

import ipaddress

import httpx
import structlog

from ragkit.models.assets import Asset
from ragkit.models.config import FetchConfig
from ragkit.services.extraction._shared import normalize_media_type
from ragkit.services.extraction.base import ExtractionContext
from ragkit.utils.concurrency import run_with_timeout
from ragkit.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_USER_AGENT = "ragkit/asset-fetch"


def is_disallowed_host(host: str) -> bool:
    """Return ``True`` for hosts the fetcher must never contact."""
    h = host.lower().strip("[]")
    if h == "localhost" or h.endswith(".localhost"):
        return True
    try:
        ip = ipaddress.ip_address(h)
    except ValueError:
        return False
    return ip.is_loopback or ip.is_private or ip.is_unspecified or ip.is_link_local


def is_allowed_host(host: str, allowed_hosts: list[str] | None) -> bool:
    if not allowed_hosts:
        return True
    h = host.lower()
    return any(h == a.lower() or h.endswith("." + a.lower()) for a in allowed_hosts)


def check_url(url: str, fetch_config: FetchConfig) -> httpx.URL:
    """Validate *url* against the fetch policy, returning the parsed URL."""
    if not fetch_config.enabled:
        raise ExtractionError(
            "Asset fetch disabled (asset_processing.fetch.enabled=False)", kind="fetch"
        )
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ExtractionError(f"Invalid asset URL: {url}", kind="fetch") from exc
    if parsed.scheme != "https":
        raise ExtractionError("Only https:// URLs are allowed for asset fetching", kind="fetch")
    if not parsed.host or is_disallowed_host(parsed.host):
        raise ExtractionError(f"Disallowed host for asset fetch: {parsed.host}", kind="fetch")
    if not is_allowed_host(parsed.host, fetch_config.allowed_hosts):
        raise ExtractionError(f"Host not allowlisted for asset fetch: {parsed.host}", kind="fetch")
    return parsed


async def _stream_body(
    client: httpx.AsyncClient,
    url: str,
    headers: dict[str, str],
    timeout_s: float,
    max_bytes: int,
) -> tuple[bytes, str | None]:
    async with client.stream("GET", url, headers=headers, timeout=timeout_s) as response:
        if not response.is_success:
            raise ExtractionError(
                f"Asset fetch failed ({response.status_code} {response.reason_phrase})",
                kind="fetch",
            )
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise ExtractionError(
                f"Asset too large (content-length {declared} > {max_bytes})", kind="size"
            )
        body = bytearray()
        async for piece in response.aiter_bytes():
            body.extend(piece)
            if len(body) > max_bytes:
                raise ExtractionError(
                    f"Asset too large ({len(body)} > {max_bytes})", kind="size"
                )
        return bytes(body), normalize_media_type(response.headers.get("content-type"))


async def fetch_bytes(
    url: str,
    fetch_config: FetchConfig,
    max_bytes: int,
    headers: dict[str, str] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> tuple[bytes, str | None]:
    """Download *url* under the fetch policy.

    Returns
    -------
    tuple[bytes, str | None]
        The body and the response media type (``content-type`` before any
        ``;`` parameters), if any.
    """
    check_url(url, fetch_config)
    merged = {"user-agent": _USER_AGENT, **(fetch_config.headers or {}), **(headers or {})}

    async def _download() -> tuple[bytes, str | None]:
        if http_client is not None:
            return await _stream_body(http_client, url, merged, fetch_config.timeout_s, max_bytes)
        async with httpx.AsyncClient() as client:
            return await _stream_body(client, url, merged, fetch_config.timeout_s, max_bytes)

    try:
        # httpx timeouts are per phase; this bounds the whole download.
        body, media_type = await run_with_timeout(
            _download(),
            fetch_config.timeout_s,
            lambda: ExtractionError(
                f"Asset fetch exceeded {fetch_config.timeout_s}s overall", kind="timeout"
            ),
        )
    except httpx.TimeoutException as exc:
        raise ExtractionError(
            f"Asset fetch timed out after {fetch_config.timeout_s}s", kind="timeout"
        ) from exc
    except httpx.HTTPError as exc:
        raise ExtractionError(f"Asset fetch failed: {exc}", kind="fetch") from exc

    logger.debug("asset_fetched", url=url, bytes=len(body), media_type=media_type)
    return body, media_type


async def get_asset_bytes(
    asset: Asset,
    ctx: ExtractionContext,
    max_bytes: int,
    default_media_type: str = "application/octet-stream",
) -> tuple[bytes, str, str | None]:
    """Return ``(bytes, media_type, filename)`` for an inline or URL asset.

    *max_bytes* should already be ``min(extractor max_bytes, fetch max_bytes)``.
    """
    data = asset.data
    if data.kind == "bytes":
        if len(data.content) > max_bytes:
            raise ExtractionError(
                f"Asset too large ({len(data.content)} > {max_bytes})", kind="size"
            )
        return data.content, data.media_type, data.filename

    body, fetched_type = await fetch_bytes(
        data.url,
        ctx.asset_processing.fetch,
        max_bytes,
        headers=data.headers,
        http_client=ctx.http_client,
    )
    media_type = data.media_type or fetched_type or default_media_type
    return body, media_type, data.filename
