"""Article embedding chunk storage and vector lookup."""

from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def replace_article_chunks(
    article_id: str,
    organization_id: str,
    chunks: list[dict[str, Any]],
) -> int:
    """
    Replace the full chunk set of an article.

    Runs the replace_article_chunks function: old rows are deleted and the
    new set inserted in one transaction, serialized per article, so
    concurrent calls never leave a mix of chunk sets and a failed insert
    keeps the previous set.

    Args:
        article_id: Article UUID
        organization_id: Owning organization UUID
        chunks: Dicts with chunk_index, content and embedding

    Returns:
        Number of chunk rows written

    Raises:
        Exception: If the RPC fails
    """
    supabase = get_supabase()

    rows = [
        {
            "content_chunk": chunk["content"],
            "embedding": chunk["embedding"],
            "chunk_index": chunk["chunk_index"],
            "metadata": {"chunk_count": len(chunks)},
        }
        for chunk in chunks
    ]

    try:
        supabase.rpc(
            "replace_article_chunks",
            {
                "p_article_id": article_id,
                "p_organization_id": organization_id,
                "p_chunks": rows,
            },
        ).execute()

        logger.info(
            f"Stored {len(rows)} chunks for article {article_id}",
            extra={"organization_id": organization_id},
        )
        return len(rows)

    except Exception as e:
        logger.error(f"Failed to replace chunks for article {article_id}: {e}")
        raise


def match_articles(
    query_embedding: list[float],
    match_threshold: float,
    match_count: int,
    organization_id: str,
) -> list[dict[str, Any]]:
    """
    Nearest-neighbour article lookup via the match_articles RPC.

    Returns:
        Rows with article id and similarity, best first. Several chunks of
        the same article may match; callers dedupe.

    Raises:
        Exception: If the RPC fails
    """
    supabase = get_supabase()

    try:
        response = supabase.rpc(
            "match_articles",
            {
                "query_embedding": query_embedding,
                "match_threshold": match_threshold,
                "match_count": match_count,
                "p_organization_id": organization_id,
            },
        ).execute()

        if not response.data:
            logger.info("No matching articles found", extra={"organization_id": organization_id})
            return []

        return response.data

    except Exception as e:
        logger.error(
            f"match_articles RPC failed: {e}",
            extra={"organization_id": organization_id},
        )
        raise
