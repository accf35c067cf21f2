"""Database operations for organizations."""

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase as get_client

logger = get_logger(__name__)


def get_organization_name(org_id: str) -> str | None:
    """Get an organization's display name, or None if it doesn't exist."""
    client = get_client()
    result = client.table("organizations").select("name").eq("id", org_id).limit(1).execute()
    if result.data:
        return result.data[0].get("name") or None
    return None
