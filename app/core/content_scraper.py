"""Help-center page scraping, validation and chunking."""

import asyncio
import re

import httpx
from bs4 import BeautifulSoup, Tag
from langchain_core.documents import Document

from app.core.chunking import split_documents
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.timeouts import with_timeout

logger = get_logger(__name__)

# Regions that carry article text
CONTENT_SELECTORS = [
    "main",
    "article",
    "[role='main']",
    ".article",
    ".article-body",
    ".content",
    "#content",
    ".main-content",
    "[class*='help']",
    "[class*='support']",
    "[class*='faq']",
]

# Removed before extraction
NOISE_SELECTORS = [
    "script",
    "style",
    "noscript",
    "nav",
    "footer",
    "iframe",
    "aside",
    "form",
    "[class*='advert']",
    "[class*='cookie']",
    "[id*='advert']",
    ".ads",
    ".ad",
]

MIN_HELP_CONTENT_CHARS = 50

_CODE_PATTERN = re.compile(r"function\(|=>|[{}\[\]]")
_HELP_PATTERN = re.compile(
    r"\b(help|support|faq|guide|how to|question|answer|article|learn|instructions?)\b",
    re.IGNORECASE,
)
_CONTACT_PATTERN = re.compile(
    r"\b(contact|customer|service|email|phone|call|chat|agent|representative|advisor)\b",
    re.IGNORECASE,
)
_ACTION_PATTERN = re.compile(
    r"\b(return|refund|order|ship|shipping|deliver|delivery|cancel|exchange|account|"
    r"payment|track|request|repair|reset|change|update)\w*\b",
    re.IGNORECASE,
)

_WHITESPACE = re.compile(r"\s+")

USER_AGENT = "Mozilla/5.0 (compatible; HelpCenterResearchBot/1.0)"


def is_valid_help_content(text: object) -> bool:
    """
    Heuristic filter for text that reads like help-center prose.

    Rejects empty, short and code-looking strings, then requires at least
    one hit from the help, contact or action vocabularies.
    """
    if not text or not isinstance(text, str):
        return False
    if len(text) < MIN_HELP_CONTENT_CHARS:
        return False
    if _CODE_PATTERN.search(text):
        return False
    return bool(
        _HELP_PATTERN.search(text)
        or _CONTACT_PATTERN.search(text)
        or _ACTION_PATTERN.search(text)
    )


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _is_inside(node: Tag, ancestor: Tag) -> bool:
    return any(parent is ancestor for parent in node.parents)


def _select_content_regions(soup: BeautifulSoup) -> list[Tag]:
    """Outermost content regions in document order, each region once."""
    selected: list[Tag] = []
    for selector in CONTENT_SELECTORS:
        for node in soup.select(selector):
            if any(node is s or _is_inside(node, s) for s in selected):
                continue
            # A later selector can match a wrapper of regions already taken
            selected = [s for s in selected if not _is_inside(s, node)]
            selected.append(node)

    position = {id(tag): i for i, tag in enumerate(soup.find_all(True))}
    return sorted(selected, key=lambda tag: position[id(tag)])


def extract_content_blocks(html: str, url: str) -> list[Document]:
    """
    Pull content-bearing regions out of a page.

    Only the outermost matching region is kept, so text inside
    <main><article> or <div class="content"><main> is emitted once.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    for selector in NOISE_SELECTORS:
        for node in soup.select(selector):
            node.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""

    docs = []
    for node in _select_content_regions(soup):
        text = collapse_whitespace(node.get_text(" "))
        if text:
            docs.append(Document(page_content=text, metadata={"source": url, "title": title}))
    return docs


async def _fetch_page(url: str, timeout: float) -> str:
    async with httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        response = await client.get(url)
        response.raise_for_status()
        return response.text


async def _scrape(url: str, timeout: float) -> list[Document]:
    html = await _fetch_page(url, timeout)
    blocks = extract_content_blocks(html, url)
    valid = [doc for doc in blocks if is_valid_help_content(doc.page_content)]
    chunks = split_documents(valid)
    logger.info(
        f"Scraped {len(blocks)} blocks, kept {len(valid)}, split into {len(chunks)} chunks",
        extra={"url": url},
    )
    return chunks


async def scrape_and_process_url(url: str, timeout: float | None = None) -> list[Document]:
    """
    Fetch one page and return validated ~1000 character chunks.

    Never raises: timeouts and fetch errors are logged and yield [].
    """
    settings = get_settings()
    bound = timeout if timeout is not None else settings.SCRAPE_TIMEOUT_SECONDS

    try:
        return await with_timeout(_scrape(url, bound), bound, f"scrape {url}")
    except Exception as e:
        logger.warning(f"Error processing URL: {e}", extra={"url": url})
        return []


async def process_help_center_urls(
    urls: list[str],
    max_documents: int | None = None,
) -> list[Document]:
    """
    Scrape every URL concurrently, then keep the first valid documents.

    All requests run to completion; trimming to `max_documents` happens
    only after the batch has joined.
    """
    if not urls:
        return []

    settings = get_settings()
    limit = max_documents if max_documents is not None else settings.MAX_SCRAPED_DOCUMENTS

    results = await asyncio.gather(*(scrape_and_process_url(url) for url in urls))

    docs = [doc for batch in results for doc in batch if is_valid_help_content(doc.page_content)]
    logger.info(f"Processed {len(urls)} URLs into {len(docs)} documents, keeping {min(len(docs), limit)}")
    return docs[:limit]
