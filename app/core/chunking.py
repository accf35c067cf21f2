"""Text chunking for article embeddings and scraped help content."""

from typing import Any

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

ARTICLE_CHUNK_CHARS = 1000

SCRAPE_CHUNK_CHARS = 1000
SCRAPE_CHUNK_OVERLAP = 100
# Paragraph, line, sentence, word, character - tried in that order
SCRAPE_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


def chunk_article_content(
    content: str,
    max_chars: int = ARTICLE_CHUNK_CHARS,
) -> list[dict[str, Any]]:
    """
    Split article content into word-aligned chunks for embedding.

    Chunking is deterministic: the same content always yields the same
    chunks and indices. Words are never split; a single word longer than
    `max_chars` becomes its own chunk.

    Args:
        content: Article body
        max_chars: Maximum characters per chunk

    Returns:
        List of chunk dicts with chunk_index and content
    """
    if not content or not content.strip():
        return []

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0

    for word in content.split():
        added = len(word) if not current else len(word) + 1
        if current and current_len + added > max_chars:
            chunks.append(" ".join(current))
            current = [word]
            current_len = len(word)
        else:
            current.append(word)
            current_len += added

    if current:
        chunks.append(" ".join(current))

    return [{"chunk_index": i, "content": chunk} for i, chunk in enumerate(chunks)]


def get_help_content_splitter() -> RecursiveCharacterTextSplitter:
    """Splitter used for scraped help-center pages."""
    return RecursiveCharacterTextSplitter(
        chunk_size=SCRAPE_CHUNK_CHARS,
        chunk_overlap=SCRAPE_CHUNK_OVERLAP,
        separators=SCRAPE_SEPARATORS,
    )


def split_documents(docs: list[Document]) -> list[Document]:
    """Split scraped documents into ~1000 character windows, keeping metadata."""
    if not docs:
        return []
    return get_help_content_splitter().split_documents(docs)
