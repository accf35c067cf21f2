"""Database operations for customer conversations and their messages."""

from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_conversation(conversation_id: str) -> dict[str, Any] | None:
    """Get a conversation row by id."""
    supabase = get_supabase()
    response = (
        supabase.table("conversations")
        .select("*")
        .eq("id", conversation_id)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def create_conversation(
    conversation_id: str,
    organization_id: str,
    customer_id: str | None,
    assignment: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a conversation in the New status.

    Args:
        assignment: is_assigned / assigned_to written with the row

    Raises:
        ValueError: If no row is returned
    """
    supabase = get_supabase()
    response = (
        supabase.table("conversations")
        .insert(
            {
                "id": conversation_id,
                "organizations_id": organization_id,
                "customer_id": customer_id,
                "status": "New",
                "is_assigned": False,
                "assigned_to": None,
                "failed_search_count": 0,
                **(assignment or {}),
            }
        )
        .execute()
    )
    if not response.data:
        raise ValueError("No data returned from create_conversation")

    logger.info(f"Created conversation {conversation_id}", extra={"conversation_id": conversation_id})
    return response.data[0]


def write_status_with_message(
    conversation_id: str,
    current_status: str,
    fields: dict[str, Any],
    system_message: str,
) -> dict[str, Any] | None:
    """
    Compare-and-set the status row and append its system message.

    Runs the transition_conversation_status function, so the status, its
    assignment fields and the system message commit in one transaction.
    The update only applies while the row is still in `current_status`.

    Returns:
        Updated row, or None if the row moved on concurrently

    Raises:
        Exception: If the RPC fails (nothing is written)
    """
    supabase = get_supabase()

    try:
        response = supabase.rpc(
            "transition_conversation_status",
            {
                "p_conversation_id": conversation_id,
                "p_current_status": current_status,
                "p_fields": fields,
                "p_message": system_message,
            },
        ).execute()
    except Exception as e:
        logger.error(
            f"Status transition RPC failed: {e}",
            extra={"conversation_id": conversation_id},
        )
        raise

    data = response.data
    if isinstance(data, list):
        data = data[0] if data else None
    return data or None


def set_failed_search_count(conversation_id: str, count: int) -> None:
    """Persist the consecutive empty-search counter."""
    supabase = get_supabase()
    supabase.table("conversations").update({"failed_search_count": count}).eq(
        "id", conversation_id
    ).execute()


def insert_message(
    conversation_id: str,
    sender_type: str,
    content: str,
    sender_id: str | None = None,
) -> dict[str, Any]:
    """
    Append a message to a conversation.

    Args:
        conversation_id: Conversation UUID
        sender_type: customer, agent or system
        content: Message text
        sender_id: Optional author identity

    Raises:
        ValueError: If no row is returned
    """
    supabase = get_supabase()
    response = (
        supabase.table("messages")
        .insert(
            {
                "conversations_id": conversation_id,
                "sender_type": sender_type,
                "sender_id": sender_id,
                "content": content,
                "created_at": _utc_now_iso(),
            }
        )
        .execute()
    )
    if not response.data:
        raise ValueError("No data returned from insert_message")
    return response.data[0]


def closed_at_now() -> str:
    """Timestamp written when a conversation closes."""
    return _utc_now_iso()
