"""LLM client utilities for LangChain integration."""

import inspect
import json
import re
from collections.abc import Awaitable, Callable
from typing import Any

from langchain_openai import ChatOpenAI

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

TokenCallback = Callable[[str], Awaitable[None] | None]


def get_llm(
    model: str | None = None,
    temperature: float | None = None,
    streaming: bool = False,
) -> ChatOpenAI:
    """
    Get configured LLM instance for LangChain chains.

    Args:
        model: Model name override (defaults to CHAT_MODEL)
        temperature: Temperature override (defaults to CHAT_TEMPERATURE)
        streaming: Whether the model should stream tokens

    Returns:
        ChatOpenAI instance configured with API key and model
    """
    settings = get_settings()

    return ChatOpenAI(
        api_key=settings.OPENAI_API_KEY,
        model=model or settings.CHAT_MODEL,
        temperature=settings.CHAT_TEMPERATURE if temperature is None else temperature,
        streaming=streaming,
    )


def message_text(message: Any) -> str:
    """Extract plain text from a LangChain message (or raw string)."""
    content = getattr(message, "content", message)
    if content is None:
        return ""
    if isinstance(content, list):
        # Content blocks: keep text parts only
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return str(content)


def strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()

    return cleaned.replace("```json", "").replace("```", "").strip()


def parse_llm_json_list(raw_output: str) -> list[Any]:
    """
    Parse LLM output as a JSON array.

    Raises:
        json.JSONDecodeError: If JSON parsing fails after cleanup
        ValueError: If the parsed value is not a list
    """
    parsed = json.loads(strip_llm_fences(raw_output))
    if not isinstance(parsed, list):
        raise ValueError(f"Expected JSON array, got {type(parsed).__name__}")
    return parsed


async def invoke_llm(prompt: str, llm: ChatOpenAI | None = None) -> str:
    """Single non-streaming completion, returned as text."""
    model = llm or get_llm()
    response = await model.ainvoke(prompt)
    return message_text(response)


async def stream_llm_response(
    prompt: str,
    on_token: TokenCallback | None = None,
    llm: ChatOpenAI | None = None,
) -> str:
    """
    Stream a completion, forwarding each token to `on_token`.

    Returns the provider's aggregated final content when it has any,
    otherwise the locally accumulated token buffer.
    """
    model = llm or get_llm(streaming=True)
    buffer: list[str] = []
    final = None

    async for chunk in model.astream(prompt):
        token = message_text(chunk)
        if token:
            buffer.append(token)
            if on_token is not None:
                result = on_token(token)
                if inspect.isawaitable(result):
                    await result
        final = chunk if final is None else final + chunk

    final_content = message_text(final) if final is not None else ""
    if final_content:
        return final_content

    logger.debug("Stream finished without aggregated content, using token buffer")
    return "".join(buffer)
