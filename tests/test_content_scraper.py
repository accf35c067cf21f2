"""Tests for help-center page scraping and validation."""

import asyncio

import httpx
import pytest
from langchain_core.documents import Document

from app.core.content_scraper import (
    extract_content_blocks,
    is_valid_help_content,
    process_help_center_urls,
    scrape_and_process_url,
)

HELP_TEXT = (
    "To return an item, contact our customer service team with your order number "
    "and we will arrange a pickup."
)

PAGE = f"""
<html>
  <head><title>Returns | Help Center</title><script>var x = 1;</script></head>
  <body>
    <nav>Home Shop Account</nav>
    <main>
      <article><p>{HELP_TEXT}</p></article>
    </main>
    <footer>Copyright</footer>
  </body>
</html>
"""


def test_is_valid_help_content_accepts_help_prose():
    assert is_valid_help_content(HELP_TEXT)


def test_is_valid_help_content_rejects_short_text():
    assert not is_valid_help_content("Contact us")


def test_is_valid_help_content_rejects_code():
    assert not is_valid_help_content(
        "window.onload = () => { trackOrder(); } // customer service order tracking widget"
    )


def test_is_valid_help_content_rejects_non_string():
    assert not is_valid_help_content(None)
    assert not is_valid_help_content(42)


def test_is_valid_help_content_requires_vocabulary():
    assert not is_valid_help_content(
        "The autumn collection features soft wool coats in muted tones and colours."
    )


def test_extract_content_blocks_strips_noise_and_nested_duplicates():
    docs = extract_content_blocks(PAGE, "https://help.example.com/returns")

    assert len(docs) == 1
    assert docs[0].page_content == HELP_TEXT
    assert docs[0].metadata == {
        "source": "https://help.example.com/returns",
        "title": "Returns | Help Center",
    }


def test_extract_content_blocks_wrapper_matched_by_later_selector():
    html = f"<html><body><div class='content'><main><p>{HELP_TEXT}</p></main></div></body></html>"

    docs = extract_content_blocks(html, "https://help.example.com/returns")

    assert len(docs) == 1
    assert docs[0].page_content == HELP_TEXT


def test_extract_content_blocks_help_wrapper_around_sections():
    html = (
        "<div class='help-center'>"
        f"<article><p>{HELP_TEXT}</p></article>"
        "<section class='faq'><p>Exchanges are free within 30 days of delivery.</p></section>"
        "</div>"
    )

    docs = extract_content_blocks(html, "https://help.example.com")

    assert len(docs) == 1
    assert HELP_TEXT in docs[0].page_content
    assert "Exchanges are free" in docs[0].page_content


def test_extract_content_blocks_identical_siblings_kept_separately():
    html = f"<div class='faq'><p>{HELP_TEXT}</p></div><div class='faq'><p>{HELP_TEXT}</p></div>"

    docs = extract_content_blocks(html, "https://help.example.com")

    assert len(docs) == 2


def test_extract_content_blocks_no_regions():
    assert extract_content_blocks("<html><body><p>Hello</p></body></html>", "u") == []


@pytest.mark.asyncio
async def test_scrape_and_process_url_returns_chunks(monkeypatch):
    async def fake_fetch(url, timeout):
        return PAGE

    monkeypatch.setattr("app.core.content_scraper._fetch_page", fake_fetch)

    docs = await scrape_and_process_url("https://help.example.com/returns")

    assert len(docs) == 1
    assert docs[0].metadata["source"] == "https://help.example.com/returns"


@pytest.mark.asyncio
async def test_scrape_and_process_url_fetch_error_returns_empty(monkeypatch):
    async def failing_fetch(url, timeout):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("app.core.content_scraper._fetch_page", failing_fetch)

    assert await scrape_and_process_url("https://help.example.com/returns") == []


@pytest.mark.asyncio
async def test_scrape_and_process_url_timeout_returns_empty(monkeypatch):
    async def slow_fetch(url, timeout):
        await asyncio.sleep(0.5)
        return PAGE

    monkeypatch.setattr("app.core.content_scraper._fetch_page", slow_fetch)

    assert await scrape_and_process_url("https://help.example.com/returns", timeout=0.01) == []


@pytest.mark.asyncio
async def test_process_help_center_urls_trims_after_all_complete(monkeypatch):
    completed = []

    async def fake_scrape(url, timeout=None):
        await asyncio.sleep(0.01)
        completed.append(url)
        return [Document(page_content=f"{HELP_TEXT} ({url})", metadata={"source": url})]

    monkeypatch.setattr("app.core.content_scraper.scrape_and_process_url", fake_scrape)
    urls = ["https://a.example.com", "https://b.example.com", "https://c.example.com"]

    docs = await process_help_center_urls(urls)

    assert sorted(completed) == urls
    assert len(docs) == 2
    assert [d.metadata["source"] for d in docs] == urls[:2]


@pytest.mark.asyncio
async def test_process_help_center_urls_empty_input():
    assert await process_help_center_urls([]) == []
