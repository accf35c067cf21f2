"""Database operations for help center articles."""

from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_articles_by_ids(article_ids: list[str], organization_id: str) -> list[dict[str, Any]]:
    """
    Fetch article rows by id, scoped to one organization.

    Args:
        article_ids: Article ids to load
        organization_id: Owning organization

    Returns:
        Article rows (id, title, description, content); missing ids are absent

    Raises:
        Exception: If database operation fails
    """
    if not article_ids:
        return []

    supabase = get_supabase()

    try:
        response = (
            supabase.table("articles")
            .select("id, title, description, content")
            .in_("id", article_ids)
            .eq("organizations_id", organization_id)
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(
            f"Failed to fetch articles: {e}",
            extra={"organization_id": organization_id},
        )
        raise
