"""OpenAI-compatible text splitter for the semantic / agentic chunkers.

Asks a chat model to partition a document into contiguous pieces and
returns them only when they reproduce the input exactly.  Every failure
(API error, unparseable answer, edited text) returns ``None`` so the
chunker can fall back to sentence splitting.
"""

from __future__ import annotations

import json

import openai
import structlog

from ragkit.interfaces.text_splitter import TextSplitter
from ragkit.services.chunking.semantic import validate_splits

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_SPLIT_MODEL = "gpt-4o-mini"

_SYSTEM_PROMPT = "You are a document chunking tool. Return ONLY a JSON array of strings."


def _instructions(chunk_size: int, goal: str) -> str:
    return "\n".join(
        [
            "Split the input into an ordered JSON array of strings.",
            "Rules:",
            "- Each element must be a contiguous substring of the input.",
            "- Preserve text exactly (no edits, no normalization).",
            "- The array must cover the entire input with no gaps or overlaps.",
            "- Avoid empty strings.",
            f"- Keep chunks roughly under {chunk_size} tokens when possible.",
            f"Goal: {goal}",
            "Return JSON only.",
        ]
    )


def extract_json_array(raw: str) -> list[str] | None:
    """Parse the text between the first ``[`` and the last ``]`` as a string list."""
    start = raw.find("[")
    end = raw.rfind("]")
    if start < 0 or end <= start:
        return None
    try:
        parsed = json.loads(raw[start:end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list) or any(not isinstance(item, str) for item in parsed):
        return None
    return parsed


class OpenAITextSplitter(TextSplitter):
    """Text splitter backed by an OpenAI-compatible chat completions API.

    Parameters
    ----------
    api_key:
        OpenAI API key (ignored when *client* is given).
    base_url:
        Optional OpenAI-compatible endpoint.
    default_model:
        Model used when the chunking options name none.
    client:
        Pre-built ``AsyncOpenAI`` client, mainly for tests.
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "",
        default_model: str = DEFAULT_SPLIT_MODEL,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        if client is None:
            client_kwargs: dict = {"api_key": api_key}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        self._default_model = default_model
        self._provider_label = "openai-compatible" if base_url else "openai"

    async def split(
        self,
        content: str,
        chunk_size: int,
        goal: str,
        model: str | None = None,
    ) -> list[str] | None:
        model = (model or "").strip() or self._default_model
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": _instructions(chunk_size, goal)},
                    {"role": "user", "content": content},
                ],
                temperature=0,
            )
        except openai.APIError as exc:
            logger.warning(
                "llm_split_request_failed",
                provider=self._provider_label,
                model=model,
                error=str(exc),
            )
            return None

        text = response.choices[0].message.content or ""
        splits = validate_splits(extract_json_array(text), content)
        logger.debug(
            "llm_split_complete",
            provider=self._provider_label,
            model=model,
            accepted=splits is not None,
            pieces=len(splits) if splits else 0,
        )
        return splits
