"""Embedding-based article retrieval and ranking.

Flow: normalize + boost the query, embed it under a time bound, pull the
nearest article chunks from pgvector, load the owning articles and rank
them. Two ranking strategies exist:

- ``title_blend`` (default): 0.4 * title-term overlap + 0.6 * vector similarity
- ``embedding_rerank``: 0.4 * cos(query, title) + 0.6 * cos(query, content),
  which costs one extra embedding call per result set

The strategy is picked by ``SIMILARITY_STRATEGY``.
"""

import asyncio
import math
from typing import Any

from app.core.config import get_settings
from app.core.embeddings import embed_query, embed_texts_async
from app.core.exceptions import UpstreamFailure, UpstreamTimeout
from app.core.logging import get_logger
from app.core.schemas_helpdesk import ScoredArticle
from app.db.articles import get_articles_by_ids
from app.db.content_chunks import match_articles

logger = get_logger(__name__)

DOMAIN_BOOST_TERMS = "customer service help support"

TITLE_WEIGHT = 0.4
SIMILARITY_WEIGHT = 0.6

STRATEGY_TITLE_BLEND = "title_blend"
STRATEGY_EMBEDDING_RERANK = "embedding_rerank"

# Content is truncated before rerank embedding
_RERANK_CONTENT_CHARS = 2000


def normalize_query(query: str) -> str:
    return query.lower().strip()


def boost_query(query: str) -> str:
    """Append the fixed help-desk vocabulary to steer the embedding."""
    return f"{normalize_query(query)} {DOMAIN_BOOST_TERMS}"


def _terms(text: str) -> set[str]:
    return set(text.lower().split())


def title_overlap(query: str, title: str | None) -> float:
    """Share of query terms that also appear in the title."""
    query_terms = _terms(query)
    if not query_terms or not title:
        return 0.0
    return len(query_terms & _terms(title)) / len(query_terms)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def blend_relevance(overlap: float, similarity: float, has_title: bool) -> float:
    """Relevance for the title_blend strategy."""
    if not has_title:
        return _clamp(similarity)
    return _clamp(TITLE_WEIGHT * overlap + SIMILARITY_WEIGHT * similarity)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Compute cosine similarity between two vectors."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def _best_similarity_per_article(matches: list[dict[str, Any]]) -> dict[str, float]:
    """Collapse chunk-level matches to the best similarity per article."""
    best: dict[str, float] = {}
    for match in matches:
        article_id = match.get("article_id") or match.get("id")
        if not article_id:
            continue
        similarity = float(match.get("similarity") or 0.0)
        if similarity > best.get(article_id, -1.0):
            best[article_id] = similarity
    return best


def score_by_title_blend(
    query: str,
    articles: list[dict[str, Any]],
    similarities: dict[str, float],
) -> list[ScoredArticle]:
    """Blend title-term overlap with the store's vector similarity."""
    normalized = normalize_query(query)
    scored = []
    for article in articles:
        similarity = similarities[article["id"]]
        title = article.get("title")
        relevance = blend_relevance(title_overlap(normalized, title), similarity, bool(title))
        scored.append(
            ScoredArticle(
                id=article["id"],
                title=title,
                description=article.get("description"),
                content=article["content"],
                similarity=similarity,
                relevance=relevance,
            )
        )
    return scored


async def rerank_by_embeddings(
    query_embedding: list[float],
    articles: list[dict[str, Any]],
    similarities: dict[str, float],
) -> list[ScoredArticle]:
    """Re-score using cosine similarity of the query against title and content separately."""
    if not articles:
        return []

    texts: list[str] = []
    for article in articles:
        texts.append(article.get("title") or "")
        texts.append(article["content"][:_RERANK_CONTENT_CHARS])

    # Empty titles still need a slot; the provider rejects empty strings
    vectors = await embed_texts_async([t if t.strip() else " " for t in texts])

    scored = []
    for i, article in enumerate(articles):
        title_vec, content_vec = vectors[2 * i], vectors[2 * i + 1]
        title_sim = cosine_similarity(query_embedding, title_vec) if article.get("title") else 0.0
        content_sim = cosine_similarity(query_embedding, content_vec)
        scored.append(
            ScoredArticle(
                id=article["id"],
                title=article.get("title"),
                description=article.get("description"),
                content=article["content"],
                similarity=similarities[article["id"]],
                relevance=_clamp(TITLE_WEIGHT * title_sim + SIMILARITY_WEIGHT * content_sim),
            )
        )
    return scored


async def find_similar_articles(
    query: str,
    organization_id: str,
    strategy: str | None = None,
) -> list[ScoredArticle]:
    """
    Find the articles of an organization that best answer a query.

    Args:
        query: Customer question
        organization_id: Organization whose articles are searched
        strategy: Ranking strategy override (defaults to SIMILARITY_STRATEGY)

    Returns:
        Up to SIMILARITY_TOP_K articles sorted by relevance, best first.
        An empty list when nothing clears the similarity threshold.

    Raises:
        UpstreamTimeout: If the query embedding exceeds its bound
        UpstreamFailure: If the vector store, article store or provider fails
    """
    settings = get_settings()
    strategy = strategy or settings.SIMILARITY_STRATEGY

    try:
        query_embedding = await embed_query(boost_query(query))

        matches = await asyncio.to_thread(
            match_articles,
            query_embedding,
            settings.SIMILARITY_THRESHOLD,
            settings.SIMILARITY_MATCH_COUNT,
            organization_id,
        )
        similarities = _best_similarity_per_article(matches)
        if not similarities:
            return []

        rows = await asyncio.to_thread(
            get_articles_by_ids, list(similarities), organization_id
        )
        articles = [
            row
            for row in rows
            if row.get("id") in similarities and (row.get("content") or "").strip()
        ]
        if not articles:
            return []

        if strategy == STRATEGY_EMBEDDING_RERANK:
            scored = await rerank_by_embeddings(query_embedding, articles, similarities)
        else:
            scored = score_by_title_blend(query, articles, similarities)

    except UpstreamTimeout:
        raise
    except Exception as e:
        logger.error(
            f"Similarity search failed: {e}",
            extra={"organization_id": organization_id},
        )
        raise UpstreamFailure(str(e)) from e

    scored.sort(key=lambda a: a.relevance, reverse=True)
    top = scored[: settings.SIMILARITY_TOP_K]

    logger.info(
        f"Similarity search returned {len(top)} of {len(scored)} articles",
        extra={"organization_id": organization_id, "extra_data": {"strategy": strategy}},
    )
    return top
