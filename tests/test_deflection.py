"""Tests for conversation status transitions, chat replies and human handoff."""

from unittest.mock import AsyncMock

import pytest

from app.core import deflection
from app.core.deflection import (
    ESCALATION_MESSAGE,
    FAREWELL_MESSAGE,
    NO_MATCH_MESSAGE,
    STATUS_MESSAGES,
    STATUS_RULES,
    can_transition,
    entry_fields,
    generate_chat_response,
    handle_customer_turn,
    is_thank_you_message,
    transition_status,
)
from app.core.exceptions import InvalidTransitionError, NotFoundError
from app.core.schemas_helpdesk import ConversationStatus, ScoredArticle

AI_ID = "00000000-0000-0000-0000-00000000a11a"
ORG_ID = "org-1"
CONV_ID = "conv-1"

S = ConversationStatus


class FakeConversationStore:
    """In-memory stand-in for app.db.conversations."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.messages: list[dict] = []
        self.lose_next_write = False

    def get_conversation(self, conversation_id):
        row = self.rows.get(conversation_id)
        return dict(row) if row else None

    def create_conversation(self, conversation_id, organization_id, customer_id, assignment=None):
        row = {
            "id": conversation_id,
            "organizations_id": organization_id,
            "customer_id": customer_id,
            "status": "New",
            "is_assigned": False,
            "assigned_to": None,
            "failed_search_count": 0,
            **(assignment or {}),
        }
        self.rows[conversation_id] = row
        return dict(row)

    def write_status_with_message(self, conversation_id, current_status, fields, system_message):
        row = self.rows.get(conversation_id)
        if self.lose_next_write:
            self.lose_next_write = False
            return None
        if row is None or row["status"] != current_status:
            return None
        row.update(fields)
        self.insert_message(conversation_id, "system", system_message)
        return dict(row)

    def set_failed_search_count(self, conversation_id, count):
        self.rows[conversation_id]["failed_search_count"] = count

    def insert_message(self, conversation_id, sender_type, content, sender_id=None):
        message = {
            "conversations_id": conversation_id,
            "sender_type": sender_type,
            "sender_id": sender_id,
            "content": content,
        }
        self.messages.append(message)
        return message

    def seed(self, status, failed=0, **fields):
        self.rows[CONV_ID] = {
            "id": CONV_ID,
            "organizations_id": ORG_ID,
            "status": status.value,
            "is_assigned": False,
            "assigned_to": None,
            "failed_search_count": failed,
            **fields,
        }
        return self.rows[CONV_ID]

    def senders(self):
        return [m["sender_type"] for m in self.messages]


@pytest.fixture
def store(monkeypatch):
    fake = FakeConversationStore()
    for name in (
        "get_conversation",
        "create_conversation",
        "write_status_with_message",
        "set_failed_search_count",
        "insert_message",
    ):
        monkeypatch.setattr(f"app.db.conversations.{name}", getattr(fake, name))
    return fake


@pytest.fixture
def chat(monkeypatch, fake_runs):
    """Patch search, LLM and tracing used by customer turns."""
    search = AsyncMock(return_value=[])
    llm = AsyncMock(return_value="We accept returns within 30 days.")
    monkeypatch.setattr("app.core.deflection.find_similar_articles", search)
    monkeypatch.setattr("app.core.deflection.invoke_llm", llm)
    monkeypatch.setattr("app.core.deflection.create_and_track_run", fake_runs)
    return {"search": search, "llm": llm, "runs": fake_runs}


def _article(content="Returns are accepted within 30 days of delivery."):
    return ScoredArticle(
        id="a1", title="Returns", content=content, similarity=0.8, relevance=0.7
    )


# ============================================================================
# Transition table
# ============================================================================


@pytest.mark.parametrize(
    "current,target",
    [
        (S.NEW, S.AI_CHAT),
        (S.AI_CHAT, S.PENDING_HANDOFF),
        (S.AI_CHAT, S.CLOSED),
        (S.PENDING_HANDOFF, S.ACTIVE),
        (S.ACTIVE, S.CLOSED),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (S.NEW, S.CLOSED),
        (S.NEW, S.ACTIVE),
        (S.AI_CHAT, S.ACTIVE),
        (S.PENDING_HANDOFF, S.CLOSED),
        (S.ACTIVE, S.AI_CHAT),
        (S.CLOSED, S.AI_CHAT),
    ],
)
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)


def test_closed_is_terminal():
    assert STATUS_RULES[S.CLOSED].allowed_next == frozenset()


def test_transition_table_is_read_only():
    with pytest.raises(TypeError):
        STATUS_RULES[S.CLOSED] = STATUS_RULES[S.NEW]


def test_entry_fields_assignment():
    assert entry_fields(S.AI_CHAT, AI_ID) == {
        "status": "AI_Chat",
        "is_assigned": True,
        "assigned_to": AI_ID,
    }
    assert entry_fields(S.PENDING_HANDOFF, AI_ID) == {
        "status": "Pending_Handoff",
        "is_assigned": False,
        "assigned_to": None,
    }
    assert entry_fields(S.ACTIVE, AI_ID) == {"status": "Active"}
    assert "closed_at" in entry_fields(S.CLOSED, AI_ID)


@pytest.mark.asyncio
async def test_transition_new_to_ai_chat(store):
    store.seed(S.NEW)

    updated = await transition_status(CONV_ID, S.AI_CHAT)

    assert updated["status"] == "AI_Chat"
    assert updated["is_assigned"] is True
    assert updated["assigned_to"] == AI_ID
    assert store.messages[-1]["sender_type"] == "system"
    assert store.messages[-1]["content"] == STATUS_MESSAGES[S.AI_CHAT]


@pytest.mark.asyncio
async def test_transition_new_to_closed_rejected(store):
    store.seed(S.NEW)

    with pytest.raises(InvalidTransitionError) as exc_info:
        await transition_status(CONV_ID, S.CLOSED)

    assert exc_info.value.status_code == 409
    assert store.rows[CONV_ID]["status"] == "New"
    assert store.messages == []


@pytest.mark.asyncio
async def test_transition_missing_conversation(store):
    with pytest.raises(NotFoundError):
        await transition_status("missing", S.AI_CHAT)


@pytest.mark.asyncio
async def test_transition_lost_race_rejected(store):
    store.seed(S.AI_CHAT)
    store.lose_next_write = True

    with pytest.raises(InvalidTransitionError):
        await transition_status(CONV_ID, S.PENDING_HANDOFF)

    assert store.messages == []


@pytest.mark.asyncio
async def test_transition_write_failure_leaves_conversation_untouched(store, monkeypatch):
    store.seed(S.AI_CHAT)

    def failing_write(*args):
        raise RuntimeError("connection reset")

    monkeypatch.setattr("app.db.conversations.write_status_with_message", failing_write)

    with pytest.raises(RuntimeError):
        await transition_status(CONV_ID, S.PENDING_HANDOFF)

    assert store.rows[CONV_ID]["status"] == "AI_Chat"
    assert store.messages == []


@pytest.mark.asyncio
async def test_transition_pending_to_active_keeps_assignment_external(store):
    store.seed(S.PENDING_HANDOFF)

    updated = await transition_status(CONV_ID, S.ACTIVE)

    assert updated["status"] == "Active"
    assert updated["is_assigned"] is False


# ============================================================================
# Chat responses
# ============================================================================


@pytest.mark.parametrize(
    "message,expected",
    [
        ("Thanks, bye", True),
        ("Thank you so much!", True),
        ("ty", True),
        ("Bye?", True),
        ("bye-bye", True),
        ("ok byeee", True),
        ("Thx!!", True),
        ("What type of leather is used?", False),
        ("That's all", True),
        ("Where is my party dress order?", False),
        ("How do I return an item?", False),
    ],
)
def test_is_thank_you_message(message, expected):
    assert is_thank_you_message(message) is expected


@pytest.mark.asyncio
async def test_generate_chat_response_thank_you_skips_model(chat):
    response = await generate_chat_response("Thanks, bye", "Returns article")

    assert response == FAREWELL_MESSAGE
    chat["llm"].assert_not_awaited()
    run = chat["runs"].named("chat_response")
    assert run.ended_with == {"response": FAREWELL_MESSAGE}
    assert run.end_metadata == {"isThankYouMessage": True}


@pytest.mark.asyncio
async def test_generate_chat_response_punctuated_farewell_skips_model(chat):
    response = await generate_chat_response("Bye?", "Returns article")

    assert response == FAREWELL_MESSAGE
    chat["llm"].assert_not_awaited()


@pytest.mark.asyncio
async def test_generate_chat_response_leaves_run_in_progress(chat):
    response = await generate_chat_response("How do I return an item?", "Returns article")

    assert response == "We accept returns within 30 days."
    prompt = chat["llm"].await_args.args[0]
    assert "How do I return an item?" in prompt
    assert "Returns article" in prompt
    run = chat["runs"].named("chat_response")
    assert run.updates == [
        ("in_progress", {"response": response}, {"isThankYouMessage": False})
    ]
    assert run.ended_with is None


@pytest.mark.asyncio
async def test_generate_chat_response_failure_recorded(chat):
    chat["llm"].side_effect = RuntimeError("model overloaded")

    with pytest.raises(RuntimeError):
        await generate_chat_response("How do I return an item?", "Returns article")

    assert str(chat["runs"].named("chat_response").failed_with) == "model overloaded"


# ============================================================================
# Customer turns
# ============================================================================


@pytest.mark.asyncio
async def test_first_message_creates_conversation_and_enters_ai_chat(store, chat):
    chat["search"].return_value = [_article()]

    result = await handle_customer_turn(CONV_ID, "How do I return an item?", ORG_ID, "cust-1")

    assert result.status == S.AI_CHAT
    assert result.response == "We accept returns within 30 days."
    assert not result.escalated
    row = store.rows[CONV_ID]
    assert row["status"] == "AI_Chat"
    assert row["assigned_to"] == AI_ID
    assert store.senders() == ["customer", "system", "agent"]
    assert store.messages[0]["sender_id"] == "cust-1"
    assert store.messages[-1]["sender_id"] == AI_ID
    assert "Returns are accepted" in chat["llm"].await_args.args[0]


@pytest.mark.asyncio
async def test_matched_turn_resets_failure_counter(store, chat):
    store.seed(S.AI_CHAT, failed=2)
    chat["search"].return_value = [_article()]

    await handle_customer_turn(CONV_ID, "How do I return an item?", ORG_ID)

    assert store.rows[CONV_ID]["failed_search_count"] == 0


@pytest.mark.asyncio
async def test_unmatched_turn_increments_counter(store, chat):
    store.seed(S.AI_CHAT, failed=1)

    result = await handle_customer_turn(CONV_ID, "Do you sell gift cards?", ORG_ID)

    assert result.response == NO_MATCH_MESSAGE
    assert not result.escalated
    assert store.rows[CONV_ID]["failed_search_count"] == 2
    assert store.rows[CONV_ID]["status"] == "AI_Chat"
    chat["llm"].assert_not_awaited()


@pytest.mark.asyncio
async def test_third_failed_search_hands_off(store, chat):
    store.seed(S.AI_CHAT, failed=2, is_assigned=True, assigned_to=AI_ID)

    result = await handle_customer_turn(CONV_ID, "Do you sell gift cards?", ORG_ID)

    assert result.escalated
    assert result.status == S.PENDING_HANDOFF
    assert result.response == ESCALATION_MESSAGE
    row = store.rows[CONV_ID]
    assert row["status"] == "Pending_Handoff"
    assert row["is_assigned"] is False
    assert row["assigned_to"] is None
    assert store.senders() == ["customer", "agent", "system"]


@pytest.mark.asyncio
async def test_thank_you_without_match_does_not_count_as_failure(store, chat):
    store.seed(S.AI_CHAT, failed=2)

    result = await handle_customer_turn(CONV_ID, "Thanks, bye", ORG_ID)

    assert result.response == FAREWELL_MESSAGE
    assert not result.escalated
    assert store.rows[CONV_ID]["failed_search_count"] == 2


@pytest.mark.asyncio
async def test_pending_handoff_turn_is_not_answered(store, chat):
    store.seed(S.PENDING_HANDOFF)

    result = await handle_customer_turn(CONV_ID, "Hello? Anyone there?", ORG_ID)

    assert result.response is None
    assert result.escalated
    chat["search"].assert_not_awaited()
    assert store.senders() == ["customer"]


@pytest.mark.asyncio
async def test_active_turn_is_left_to_agent(store, chat):
    store.seed(S.ACTIVE)

    result = await handle_customer_turn(CONV_ID, "Thanks for joining", ORG_ID)

    assert result.response is None
    assert not result.escalated
    assert result.status == S.ACTIVE


@pytest.mark.asyncio
async def test_closed_conversation_rejects_messages(store, chat):
    store.seed(S.CLOSED)

    with pytest.raises(InvalidTransitionError):
        await handle_customer_turn(CONV_ID, "One more question", ORG_ID)

    assert store.messages == []


def test_status_messages_cover_every_status():
    assert set(deflection.STATUS_MESSAGES) == set(ConversationStatus)
