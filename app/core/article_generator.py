"""Researched, brand-voice article generation."""

import asyncio
import re
from typing import Any

from app.core.competitor_research import learn_from_help_centers, search_help_center_articles
from app.core.exceptions import EmptyContentError
from app.core.llm import TokenCallback, stream_llm_response
from app.core.logging import get_logger
from app.core.run_tracking import create_and_track_run
from app.db.organizations import get_organization_name

logger = get_logger(__name__)

DEFAULT_BRAND_NAME = "Our"

_QUOTES = re.compile(r"[\"'“”‘’]")


def build_article_prompt(
    brand_name: str,
    title: str,
    description: str,
    competitor_insights: str,
) -> str:
    return f"""You are writing a help center article as {brand_name}'s official customer service representative.

TOPIC: {title}
CONTEXT: {description}

COMPETITOR INSIGHTS:
{competitor_insights or "None available."}

STYLE GUIDE:
- Write from {brand_name}'s perspective using "we," "our," and "us"
- Be precise and elegant
- Include only essential information
- Write 1-2 concise paragraphs only
- Each paragraph should be 2-3 sentences maximum
- Use respectful, sophisticated language
- No redundant explanations
- Do not use quotation marks or bullet points

Write a concise, sophisticated response in our brand voice without quotation marks."""


def strip_quotes(text: str) -> str:
    return _QUOTES.sub("", text).strip()


async def _fetch_brand_name(organization_id: str) -> str:
    try:
        name = await asyncio.to_thread(get_organization_name, organization_id)
    except Exception as e:
        logger.warning(
            f"Brand name lookup failed: {e}",
            extra={"organization_id": organization_id},
        )
        name = None
    return name or DEFAULT_BRAND_NAME


async def generate_enhanced_article(
    title: str,
    description: str,
    organization_id: str,
    collection_id: str | None = None,
    on_token: TokenCallback | None = None,
) -> str:
    """
    Generate help center copy for a topic, informed by competitor help centers.

    Args:
        title: Article title / topic
        description: Extra context from the author
        organization_id: Organization whose brand voice is used
        collection_id: Optional collection the article belongs to
        on_token: Optional callback receiving streamed tokens

    Returns:
        Generated article text with quote characters removed

    Raises:
        EmptyContentError: If the model produced no usable text
        Exception: Any generation failure, after being recorded on the run
    """
    inputs: dict[str, Any] = {
        "title": title,
        "description": description,
        "organization_id": organization_id,
        "collection_id": collection_id,
    }
    parent = await create_and_track_run("generate_enhanced_article", "chain", inputs)
    open_child = None

    try:
        research_run, brand_name = await asyncio.gather(
            create_and_track_run(
                "competitor_research",
                "retriever",
                {"topic": title, "organization_id": organization_id},
                parent_id=parent.id,
            ),
            _fetch_brand_name(organization_id),
        )
        open_child = research_run

        research = await search_help_center_articles(title, organization_id)
        insights = await learn_from_help_centers(title, organization_id, research=research)
        await research_run.end(
            {
                "competitors": research.competitors,
                "urls": research.urls,
                "insights_chars": len(insights),
            }
        )
        open_child = None

        content_run = await create_and_track_run(
            "generate_content",
            "llm",
            {"brand_name": brand_name, "title": title},
            parent_id=parent.id,
        )
        open_child = content_run

        prompt = build_article_prompt(brand_name, title, description, insights)
        raw = await stream_llm_response(prompt, on_token)
        content = strip_quotes(raw)
        if not content:
            raise EmptyContentError(f"No content generated for '{title}'")

        await content_run.end({"content": content})
        open_child = None
        await parent.end({"content": content})

        logger.info(
            f"Generated article '{title}' ({len(content)} chars)",
            extra={"organization_id": organization_id, "run_id": parent.id},
        )
        return content

    except Exception as e:
        logger.error(
            f"Enhanced article generation failed: {e}",
            extra={"organization_id": organization_id, "run_id": parent.id},
        )
        if open_child is not None:
            await open_child.fail(e)
        await parent.fail(e)
        raise
