"""Tavily web search service."""

from datetime import datetime, timezone
from typing import Any

import httpx

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SEARCH_TIMEOUT = 20.0


async def web_search(
    query: str,
    search_depth: str = "basic",
    max_results: int = 3,
    exclude_domains: list[str] | None = None,
    include_domains: list[str] | None = None,
    end_date_now: bool = False,
    timeout: float = DEFAULT_SEARCH_TIMEOUT,
) -> list[dict[str, Any]]:
    """
    Search the web using the Tavily API.

    Args:
        query: Search query
        search_depth: "basic" or "advanced"
        max_results: Maximum results to return
        exclude_domains: Domains filtered out by the provider
        include_domains: Restrict results to these domains
        end_date_now: Only return results published up to today
        timeout: Request timeout in seconds

    Returns:
        List of {url, title, content} dicts

    Raises:
        ValueError: If TAVILY_API_KEY not configured
        httpx.HTTPStatusError: If the API request fails
    """
    settings = get_settings()

    if not settings.TAVILY_API_KEY:
        raise ValueError("TAVILY_API_KEY not configured")

    payload: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
    }
    if exclude_domains:
        payload["exclude_domains"] = exclude_domains
    if include_domains:
        payload["include_domains"] = include_domains
    if end_date_now:
        payload["end_date"] = datetime.now(timezone.utc).strftime("%Y-%m-%d")

    async with httpx.AsyncClient(timeout=timeout) as client:
        logger.debug(f"Web search: {query}")

        response = await client.post(
            f"{settings.TAVILY_BASE_URL}/search",
            headers={"Authorization": f"Bearer {settings.TAVILY_API_KEY}"},
            json=payload,
        )
        response.raise_for_status()

        results = [
            {
                "url": r.get("url", ""),
                "title": r.get("title", ""),
                "content": r.get("content", ""),
            }
            for r in response.json().get("results", [])
        ]

    logger.info(f"Web search returned {len(results)} results for: {query}")
    return results


async def web_search_safe(query: str, **kwargs: Any) -> list[dict[str, Any]]:
    """
    Web search with error handling - returns [] on failure.

    Use this when search is one tier of a fallback chain and failure should
    degrade to the next tier rather than abort the flow.
    """
    try:
        return await web_search(query, **kwargs)
    except ValueError as e:
        logger.warning(f"Web search not configured: {e}")
        return []
    except httpx.HTTPStatusError as e:
        logger.warning(f"Web search HTTP error for '{query}': {e.response.status_code}")
        return []
    except httpx.TimeoutException:
        logger.warning(f"Web search timeout for '{query}'")
        return []
    except Exception as e:
        logger.warning(f"Web search error for '{query}': {e}")
        return []
