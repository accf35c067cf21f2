"""Competitor discovery and help-center research.

Two entry points:

- ``search_help_center_articles``: find up to three competitor brands for
  an organization and up to two validated help-center URLs on their sites.
- ``learn_from_help_centers``: gather competitor help text for a topic
  through three tiers (help-center API queries, knowledge-base search,
  page scraping) and condense it into insights for article generation.

Every provider call is guarded; a failing tier hands over to the next
and only total failure produces the empty result.
"""

import asyncio
import random
import re
from urllib.parse import quote_plus, urlparse

import httpx
from bs4 import BeautifulSoup

from app.core.config import get_settings
from app.core.content_scraper import collapse_whitespace, process_help_center_urls
from app.core.llm import invoke_llm, parse_llm_json_list
from app.core.logging import get_logger
from app.core.schemas_helpdesk import CompetitorResearchResult
from app.core.web_search import web_search_safe
from app.db.organizations import get_organization_name

logger = get_logger(__name__)

MAX_COMPETITORS = 3
MAX_COMPETITORS_SEARCHED = 2
MAX_HELP_URLS = 2

# Social networks, review and complaint boards, encyclopedias
BLOCKED_DOMAINS = [
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "linkedin.com",
    "youtube.com",
    "tiktok.com",
    "pinterest.com",
    "reddit.com",
    "quora.com",
    "wikipedia.org",
    "trustpilot.com",
    "yelp.com",
    "bbb.org",
    "complaintsboard.com",
    "pissedconsumer.com",
    "sitejabber.com",
    "glassdoor.com",
]

JUNK_PATH_SEGMENTS = ["/error", "/login", "/404", "/cart", "/search", "/sitemap", "cloudflare"]
HELP_PATH_SEGMENTS = ["/help", "/support", "/faq", "/customer-service", "/care", "/contact"]

HELP_CENTER_PLATFORMS = [
    "support.zendesk.com",
    "help.zendesk.com",
    "help.shopify.com",
    "support.google.com",
    "docs.github.com",
]

COMPETITOR_QUERY_TEMPLATES = [
    "who are the main competitors of {org}",
    "{org} top competitor brands market analysis",
    "brands similar to {org} and their competitors",
    "{org} vs competitors industry rivals",
]

# API queries stop at 80% of the budget, scraping only runs below 30%
SUFFICIENT_CONTENT_RATIO = 0.8
SCRAPE_FALLBACK_RATIO = 0.3

HELP_CENTER_API_PATH = "/api/v2/help_center/articles/search.json"
HELP_API_TIMEOUT = 8.0


# ============================================================================
# URL validation
# ============================================================================


def _compact_name(competitor: str) -> str:
    """Brand name as it would appear in a hostname ("louis vuitton" -> "louisvuitton")."""
    return re.sub(r"[^a-z0-9-]", "", competitor.lower())


def is_blocked_host(hostname: str) -> bool:
    hostname = hostname.lower()
    return any(hostname == d or hostname.endswith("." + d) for d in BLOCKED_DOMAINS)


def is_valid_help_center_url(url: str | None, competitor: str) -> bool:
    """
    Accept only help/support pages hosted on the competitor's own domain.

    Rejected outright: short or non-http strings, blocked hosts and junk
    paths (errors, logins, carts, search pages, sitemaps, bot walls).
    """
    if not url or len(url) < 10 or not url.startswith("http"):
        return False

    try:
        parsed = urlparse(url.lower())
    except ValueError:
        return False

    hostname = parsed.hostname or ""
    if not hostname or is_blocked_host(hostname):
        return False

    path = parsed.path + ("?" + parsed.query if parsed.query else "")
    if any(segment in path for segment in JUNK_PATH_SEGMENTS):
        return False

    if not any(segment in path for segment in HELP_PATH_SEGMENTS):
        return False

    name = _compact_name(competitor)
    if not name:
        return False
    host_pattern = re.compile(rf"^https?://([\w-]+\.)?{re.escape(name)}\.[a-z]+")
    return bool(host_pattern.match(url.lower()))


# ============================================================================
# Competitor discovery
# ============================================================================


def build_competitor_query(org_name: str) -> str:
    """Pick one of the query phrasings at random (no caching across calls)."""
    return random.choice(COMPETITOR_QUERY_TEMPLATES).format(org=org_name)


async def extract_competitor_names(org_name: str, research_text: str) -> list[str]:
    """
    Ask the LLM for up to three lowercase competitor names.

    Never raises: malformed output or provider errors yield [].
    """
    prompt = f"""Based on this market research, identify the top {MAX_COMPETITORS} direct competitors of {org_name}.
Market Research: {research_text}

Instructions:
1. Return ONLY a valid JSON array of lowercase brand names
2. Format example: ["brandname1", "brandname2", "brandname3"]
3. No explanation, just the JSON array
4. No periods or other punctuation

Response:"""

    try:
        raw = await invoke_llm(prompt)
        parsed = parse_llm_json_list(raw)
    except Exception as e:
        logger.warning(f"Could not extract competitor names: {e}")
        return []

    own_name = org_name.lower().strip()
    competitors: list[str] = []
    for item in parsed:
        if not isinstance(item, str):
            continue
        name = item.lower().strip()
        if name and name != own_name and name not in competitors:
            competitors.append(name)
    return competitors[:MAX_COMPETITORS]


async def find_competitor_help_url(competitor: str, topic: str) -> str | None:
    """Direct search first, then a topic-only retry; the first valid URL wins."""
    queries = [
        f"{competitor} official site customer service {topic}",
        f"{competitor} {topic}",
    ]
    for query in queries:
        results = await web_search_safe(
            query,
            search_depth="advanced",
            max_results=3,
            exclude_domains=BLOCKED_DOMAINS,
        )
        for result in results:
            if is_valid_help_center_url(result.get("url"), competitor):
                return result["url"]
    return None


async def search_industry_help_centers(topic: str) -> list[str]:
    """Generic fallback: help-center articles on well-known help platforms."""
    results = await web_search_safe(
        f'help center article "{topic}"',
        search_depth="advanced",
        max_results=3,
        include_domains=HELP_CENTER_PLATFORMS,
    )
    return [r["url"] for r in results if r.get("url")]


async def search_help_center_articles(topic: str, organization_id: str) -> CompetitorResearchResult:
    """
    Discover competitors of an organization and their help pages for a topic.

    Returns:
        Up to two validated competitor URLs and the competitor names; when
        no competitor URL validates, generic help-platform URLs instead.
    """
    try:
        org_name = await asyncio.to_thread(get_organization_name, organization_id)
    except Exception as e:
        logger.warning(
            f"Organization lookup failed: {e}",
            extra={"organization_id": organization_id},
        )
        org_name = None

    if not org_name:
        return CompetitorResearchResult(urls=await search_industry_help_centers(topic))

    try:
        query = build_competitor_query(org_name)
        results = await web_search_safe(
            query,
            search_depth="advanced",
            max_results=3,
            end_date_now=True,
        )
        research_text = "\n".join(r.get("content", "") for r in results)

        competitors = await extract_competitor_names(org_name, research_text)
        logger.info(
            f"Identified competitors: {competitors}",
            extra={"organization_id": organization_id},
        )

        found = await asyncio.gather(
            *(find_competitor_help_url(c, topic) for c in competitors[:MAX_COMPETITORS_SEARCHED])
        )
        urls = [url for url in found if url][:MAX_HELP_URLS]

    except Exception as e:
        logger.error(
            f"Competitor research failed: {e}",
            extra={"organization_id": organization_id},
        )
        return CompetitorResearchResult(urls=await search_industry_help_centers(topic))

    if not urls:
        logger.info("No competitor help pages validated, using help platform search")
        urls = await search_industry_help_centers(topic)

    return CompetitorResearchResult(urls=urls, competitors=competitors)


# ============================================================================
# Help-center learning
# ============================================================================


def candidate_help_hosts(research: CompetitorResearchResult) -> list[str]:
    """Hosts worth querying: discovered URL hosts, then help./support. guesses."""
    hosts: list[str] = []
    for url in research.urls:
        host = urlparse(url).hostname
        if host and host not in hosts:
            hosts.append(host)
    for competitor in research.competitors:
        name = _compact_name(competitor)
        if not name:
            continue
        for host in (f"help.{name}.com", f"support.{name}.com"):
            if host not in hosts:
                hosts.append(host)
    return hosts


async def query_help_center_api(host: str, topic: str) -> list[str]:
    """
    Query a public help-center article search endpoint on a host.

    Returns article texts ("title: body"); [] when the host exposes no
    such endpoint or the call fails.
    """
    url = f"https://{host}{HELP_CENTER_API_PATH}?query={quote_plus(topic)}&per_page=3"
    try:
        async with httpx.AsyncClient(timeout=HELP_API_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            data = response.json()
    except Exception as e:
        logger.debug(f"Help center API query failed for {host}: {e}")
        return []

    texts = []
    for article in data.get("results", []) if isinstance(data, dict) else []:
        body = BeautifulSoup(article.get("body") or "", "html.parser").get_text(" ")
        text = collapse_whitespace(f"{article.get('title', '')}: {body}")
        if len(text) > 2:
            texts.append(text)
    return texts


async def search_knowledge_bases(
    competitor: str | None,
    topic: str,
    hosts: list[str],
) -> list[str]:
    """Alternative tier: web search restricted to the competitor's help hosts."""
    query = f"{competitor} {topic} knowledge base" if competitor else f"{topic} knowledge base"
    results = await web_search_safe(
        query,
        search_depth="advanced",
        max_results=3,
        include_domains=hosts or None,
    )
    return [r["content"] for r in results if r.get("content")]


class _ContentBudget:
    """Accumulates research text against a character budget."""

    def __init__(self, budget: int):
        self.budget = budget
        self.parts: list[str] = []

    @property
    def size(self) -> int:
        return sum(len(p) for p in self.parts)

    def add(self, texts: list[str]) -> None:
        self.parts.extend(t for t in texts if t)

    def reached(self, ratio: float) -> bool:
        return self.size >= ratio * self.budget

    def text(self) -> str:
        return "\n\n".join(self.parts)[: self.budget]


async def gather_help_center_content(
    topic: str,
    research: CompetitorResearchResult,
    budget: int,
) -> str:
    """
    Run the three content tiers, stopping as soon as enough text is held.

    1. Help-center API queries per host (stops at 80% of budget)
    2. Knowledge-base search per competitor (stops at 80% of budget)
    3. Page scraping of the discovered URLs (only below 30% of budget)
    """
    content = _ContentBudget(budget)
    hosts = candidate_help_hosts(research)

    for host in hosts:
        content.add(await query_help_center_api(host, topic))
        if content.reached(SUFFICIENT_CONTENT_RATIO):
            logger.info(f"Help center API queries gathered {content.size} chars")
            return content.text()

    for competitor in research.competitors or [None]:
        content.add(await search_knowledge_bases(competitor, topic, hosts))
        if content.reached(SUFFICIENT_CONTENT_RATIO):
            logger.info(f"Knowledge base search gathered {content.size} chars")
            return content.text()

    if not content.reached(SCRAPE_FALLBACK_RATIO) and research.urls:
        docs = await process_help_center_urls(research.urls)
        content.add([doc.page_content for doc in docs])

    logger.info(f"Help center research gathered {content.size} chars")
    return content.text()


async def learn_from_help_centers(
    topic: str,
    organization_id: str,
    research: CompetitorResearchResult | None = None,
) -> str:
    """
    Produce competitor insights for a topic.

    Args:
        topic: Article title / customer topic
        organization_id: Organization requesting the article
        research: Pre-computed competitor research (searched when omitted)

    Returns:
        Insight text; empty when nothing could be gathered
    """
    settings = get_settings()
    logger.info(f"Learning from help centers about: {topic}", extra={"organization_id": organization_id})

    if research is None:
        research = await search_help_center_articles(topic, organization_id)

    gathered = await gather_help_center_content(topic, research, settings.RESEARCH_CONTENT_BUDGET)
    if not gathered.strip():
        return ""

    prompt = f"""Analyze these help center articles briefly:
1. Key points about {topic}
2. Best practices

Articles: {gathered}"""

    try:
        return await invoke_llm(prompt)
    except Exception as e:
        logger.warning(f"Insight analysis failed, passing raw research through: {e}")
        return gathered
