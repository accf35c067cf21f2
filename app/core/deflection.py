"""Conversation deflection: status transitions, AI chat replies and human handoff.

Status flow:
  New -> AI_Chat -> Pending_Handoff -> Active -> Closed
  AI_Chat -> Closed

Each status carries a fixed assignment applied in the same row write as the
status itself. The status write and its system message commit together in
one database transaction.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from app.core.config import get_settings
from app.core.exceptions import InvalidTransitionError, NotFoundError
from app.core.llm import invoke_llm
from app.core.logging import get_logger, log_with_context
from app.core.run_tracking import STATUS_IN_PROGRESS, create_and_track_run
from app.core.schemas_helpdesk import ChatTurnResult, ConversationStatus, SenderType
from app.core.similarity_search import find_similar_articles
from app.db import conversations as conversations_db

logger = get_logger(__name__)


# ============================================================================
# Transition table
# ============================================================================


@dataclass(frozen=True)
class Assignment:
    """Assignment fields written when a status is entered."""

    is_assigned: bool
    to_ai: bool

    def fields(self, ai_identity: str) -> dict[str, Any]:
        return {
            "is_assigned": self.is_assigned,
            "assigned_to": ai_identity if self.to_ai else None,
        }


@dataclass(frozen=True)
class StatusRule:
    allowed_next: frozenset[ConversationStatus]
    on_entry: Assignment | None


_AI_ASSIGNED = Assignment(is_assigned=True, to_ai=True)
_UNASSIGNED = Assignment(is_assigned=False, to_ai=False)

STATUS_RULES: MappingProxyType[ConversationStatus, StatusRule] = MappingProxyType(
    {
        ConversationStatus.NEW: StatusRule(
            frozenset({ConversationStatus.AI_CHAT}), _AI_ASSIGNED
        ),
        ConversationStatus.AI_CHAT: StatusRule(
            frozenset({ConversationStatus.PENDING_HANDOFF, ConversationStatus.CLOSED}),
            _AI_ASSIGNED,
        ),
        ConversationStatus.PENDING_HANDOFF: StatusRule(
            frozenset({ConversationStatus.ACTIVE}), _UNASSIGNED
        ),
        # Human assignment happens outside this service
        ConversationStatus.ACTIVE: StatusRule(frozenset({ConversationStatus.CLOSED}), None),
        ConversationStatus.CLOSED: StatusRule(frozenset(), None),
    }
)

STATUS_MESSAGES: MappingProxyType[ConversationStatus, str] = MappingProxyType(
    {
        ConversationStatus.NEW: "Conversation started.",
        ConversationStatus.AI_CHAT: "Our AI assistant has joined the conversation.",
        ConversationStatus.PENDING_HANDOFF: "Conversation is waiting for a support agent.",
        ConversationStatus.ACTIVE: "A support agent has joined the conversation.",
        ConversationStatus.CLOSED: "Conversation closed.",
    }
)

THANK_YOU_PHRASES = (
    "thank you",
    "thanks",
    "thank u",
    "thx",
    "ty",
    "goodbye",
    "good bye",
    "bye",
    "that's all",
    "that is all",
)

FAREWELL_MESSAGE = (
    "You're welcome! If there is anything else we can help with, "
    "we're always here for you. Have a wonderful day!"
)

ESCALATION_MESSAGE = (
    "I'm sorry I couldn't find the answer you need. "
    "I'm connecting you with a member of our support team, who will be with you shortly."
)

NO_MATCH_MESSAGE = (
    "I couldn't find an article about that yet. "
    "Could you tell me a little more about what you need help with?"
)


def can_transition(current: ConversationStatus, target: ConversationStatus) -> bool:
    return target in STATUS_RULES[current].allowed_next


def entry_fields(status: ConversationStatus, ai_identity: str) -> dict[str, Any]:
    """Row fields written when entering a status (status and assignment)."""
    fields: dict[str, Any] = {"status": status.value}
    rule = STATUS_RULES[status]
    if rule.on_entry is not None:
        fields.update(rule.on_entry.fields(ai_identity))
    if status == ConversationStatus.CLOSED:
        fields["closed_at"] = conversations_db.closed_at_now()
    return fields


async def transition_status(conversation_id: str, target: ConversationStatus) -> dict[str, Any]:
    """
    Move a conversation to a new status.

    Raises:
        NotFoundError: If the conversation doesn't exist
        InvalidTransitionError: If the table doesn't allow current -> target,
            or the row changed status concurrently
    """
    conversation = await asyncio.to_thread(conversations_db.get_conversation, conversation_id)
    if conversation is None:
        raise NotFoundError(f"Conversation {conversation_id} not found")

    current = ConversationStatus(conversation["status"])
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)

    settings = get_settings()
    updated = await asyncio.to_thread(
        conversations_db.write_status_with_message,
        conversation_id,
        current.value,
        entry_fields(target, settings.AI_AGENT_ID),
        STATUS_MESSAGES[target],
    )
    if updated is None:
        raise InvalidTransitionError(current.value, target.value)

    logger.info(
        f"Conversation moved {current.value} -> {target.value}",
        extra={"conversation_id": conversation_id},
    )
    return updated


# ============================================================================
# Chat responses
# ============================================================================


def _short_phrase_pattern(phrase: str) -> re.Pattern[str]:
    # Whole word only; the last letter may repeat ("byeee")
    return re.compile(rf"\b{re.escape(phrase)}{re.escape(phrase[-1])}*\b")


_SHORT_THANK_YOU_PATTERNS = tuple(
    _short_phrase_pattern(p) for p in THANK_YOU_PHRASES if len(p) <= 3
)
_LONG_THANK_YOU_PHRASES = tuple(p for p in THANK_YOU_PHRASES if len(p) > 3)


def is_thank_you_message(question: str) -> bool:
    normalized = question.lower().strip()
    if any(phrase in normalized for phrase in _LONG_THANK_YOU_PHRASES):
        return True
    return any(pattern.search(normalized) for pattern in _SHORT_THANK_YOU_PATTERNS)


def build_chat_prompt(question: str, article_content: str) -> str:
    return f"""You are a friendly customer service representative answering a customer in a live chat.

CUSTOMER QUESTION: {question}

RELEVANT HELP ARTICLE:
{article_content}

STYLE GUIDE:
- Answer in at most 3 sentences
- Speak as the brand using "we," "our," and "us"
- Only use information from the help article
- Be warm, precise and polite
- Do not use quotation marks or bullet points"""


async def generate_chat_response(question: str, article_content: str) -> str:
    """
    Answer a customer question from a help article.

    Farewell/thanks messages get a canned reply without calling the model;
    that run is closed. Otherwise the run is left in progress because the
    conversation continues.
    """
    run = await create_and_track_run(
        "chat_response",
        "chain",
        {"question": question, "article_chars": len(article_content or "")},
    )

    if is_thank_you_message(question):
        await run.end({"response": FAREWELL_MESSAGE}, metadata={"isThankYouMessage": True})
        return FAREWELL_MESSAGE

    try:
        response = (await invoke_llm(build_chat_prompt(question, article_content))).strip()
    except Exception as e:
        logger.error(f"Chat response generation failed: {e}", extra={"run_id": run.id})
        await run.fail(e)
        raise

    await run.update(
        STATUS_IN_PROGRESS,
        outputs={"response": response},
        metadata={"isThankYouMessage": False},
    )
    return response


# ============================================================================
# Customer turns
# ============================================================================


async def _record_agent_reply(conversation_id: str, text: str) -> None:
    settings = get_settings()
    await asyncio.to_thread(
        conversations_db.insert_message,
        conversation_id,
        SenderType.AGENT.value,
        text,
        settings.AI_AGENT_ID,
    )


async def _load_or_create(
    conversation_id: str,
    organization_id: str,
    customer_id: str | None,
) -> dict[str, Any]:
    conversation = await asyncio.to_thread(conversations_db.get_conversation, conversation_id)
    if conversation is not None:
        return conversation

    settings = get_settings()
    initial = entry_fields(ConversationStatus.NEW, settings.AI_AGENT_ID)
    initial.pop("status")
    return await asyncio.to_thread(
        conversations_db.create_conversation,
        conversation_id,
        organization_id,
        customer_id,
        initial,
    )


async def handle_customer_turn(
    conversation_id: str,
    content: str,
    organization_id: str,
    customer_id: str | None = None,
) -> ChatTurnResult:
    """
    Process one customer message.

    Searches the organization's articles first. A matched turn is answered
    by the AI and resets the failure counter; an empty search increments
    it, and reaching MAX_FAILED_SEARCHES hands the conversation to a human
    instead of answering.

    Raises:
        InvalidTransitionError: If the conversation is closed
    """
    settings = get_settings()
    conversation = await _load_or_create(conversation_id, organization_id, customer_id)
    status = ConversationStatus(conversation["status"])

    if status == ConversationStatus.CLOSED:
        raise InvalidTransitionError(status.value, ConversationStatus.AI_CHAT.value)

    await asyncio.to_thread(
        conversations_db.insert_message,
        conversation_id,
        SenderType.CUSTOMER.value,
        content,
        customer_id,
    )

    # Humans own the conversation from here
    if status in (ConversationStatus.PENDING_HANDOFF, ConversationStatus.ACTIVE):
        return ChatTurnResult(
            response=None,
            escalated=status == ConversationStatus.PENDING_HANDOFF,
            status=status,
        )

    if status == ConversationStatus.NEW:
        await transition_status(conversation_id, ConversationStatus.AI_CHAT)
        status = ConversationStatus.AI_CHAT

    articles = await find_similar_articles(content, organization_id)
    failed = int(conversation.get("failed_search_count") or 0)

    if articles:
        if failed:
            await asyncio.to_thread(conversations_db.set_failed_search_count, conversation_id, 0)
        response = await generate_chat_response(content, articles[0].content)
        await _record_agent_reply(conversation_id, response)
        return ChatTurnResult(response=response, status=status)

    if is_thank_you_message(content):
        response = await generate_chat_response(content, "")
        await _record_agent_reply(conversation_id, response)
        return ChatTurnResult(response=response, status=status)

    failed += 1
    await asyncio.to_thread(conversations_db.set_failed_search_count, conversation_id, failed)
    log_with_context(
        logger,
        logging.INFO,
        "No article matched",
        conversation_id=conversation_id,
        organization_id=organization_id,
        failed_searches=failed,
        max_failed_searches=settings.MAX_FAILED_SEARCHES,
    )

    if failed >= settings.MAX_FAILED_SEARCHES:
        await _record_agent_reply(conversation_id, ESCALATION_MESSAGE)
        await transition_status(conversation_id, ConversationStatus.PENDING_HANDOFF)
        return ChatTurnResult(
            response=ESCALATION_MESSAGE,
            escalated=True,
            status=ConversationStatus.PENDING_HANDOFF,
        )

    await _record_agent_reply(conversation_id, NO_MATCH_MESSAGE)
    return ChatTurnResult(response=NO_MATCH_MESSAGE, status=status)
