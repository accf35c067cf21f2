"""Article embedding regeneration."""

import asyncio

from app.core.chunking import chunk_article_content
from app.core.embeddings import embed_texts_async
from app.core.logging import get_logger
from app.db.content_chunks import replace_article_chunks

logger = get_logger(__name__)


async def store_article_embeddings(article_id: str, content: str, organization_id: str) -> int:
    """
    Regenerate the embedding chunks of an article.

    All embeddings are computed before anything is written, so a provider
    failure leaves the previous chunk set untouched.

    Returns:
        Number of chunks stored

    Raises:
        Exception: If embedding or storage fails
    """
    chunks = chunk_article_content(content)
    embeddings = await embed_texts_async([c["content"] for c in chunks])

    for chunk, embedding in zip(chunks, embeddings):
        chunk["embedding"] = embedding

    stored = await asyncio.to_thread(replace_article_chunks, article_id, organization_id, chunks)
    logger.info(
        f"Regenerated embeddings for article {article_id}",
        extra={"organization_id": organization_id, "extra_data": {"chunks": stored}},
    )
    return stored
