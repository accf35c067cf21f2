"""API endpoints for customer conversations (AI deflection and handoff)."""

from fastapi import APIRouter, HTTPException

from app.core.deflection import handle_customer_turn, transition_status
from app.core.exceptions import HelpdeskError, ValidationError
from app.core.logging import get_logger
from app.core.schemas_helpdesk import ChatTurnResult, CustomerMessageRequest, StatusChangeRequest

logger = get_logger(__name__)

router = APIRouter()


@router.post("/{conversation_id}/messages", response_model=ChatTurnResult)
async def post_customer_message(
    conversation_id: str,
    request: CustomerMessageRequest,
) -> ChatTurnResult:
    """
    Record a customer message and answer it with AI or hand off to a human.

    Raises:
        HTTPException 400: If content or organizationId is missing
        HTTPException 409: If the conversation is closed
        HTTPException 500: If search or generation fails
    """
    try:
        if not request.content or not request.content.strip() or not request.organization_id:
            raise ValidationError("Content and organization ID are required")

        return await handle_customer_turn(
            conversation_id,
            request.content,
            request.organization_id,
            request.customer_id,
        )
    except HelpdeskError as e:
        logger.warning(f"Customer turn rejected: {e}", extra={"conversation_id": conversation_id})
        raise HTTPException(status_code=e.status_code, detail=e.public_message) from e
    except Exception as e:
        logger.exception("Customer turn failed", extra={"conversation_id": conversation_id})
        raise HTTPException(status_code=500, detail="Failed to process message") from e


@router.post("/{conversation_id}/status")
async def change_conversation_status(
    conversation_id: str,
    request: StatusChangeRequest,
) -> dict:
    """
    Apply a validated status transition.

    Raises:
        HTTPException 404: If the conversation doesn't exist
        HTTPException 409: If the transition isn't allowed
    """
    try:
        updated = await transition_status(conversation_id, request.status)
    except HelpdeskError as e:
        logger.warning(f"Status change rejected: {e}", extra={"conversation_id": conversation_id})
        raise HTTPException(status_code=e.status_code, detail=e.public_message) from e
    except Exception as e:
        logger.exception("Status change failed", extra={"conversation_id": conversation_id})
        raise HTTPException(status_code=500, detail="Failed to update conversation") from e

    return {"conversation": updated}
