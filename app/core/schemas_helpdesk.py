"""Pydantic schemas for the help center content pipeline."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ConversationStatus(str, Enum):
    """Lifecycle of a customer conversation."""

    NEW = "New"
    AI_CHAT = "AI_Chat"
    PENDING_HANDOFF = "Pending_Handoff"
    ACTIVE = "Active"
    CLOSED = "Closed"


class SenderType(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"
    SYSTEM = "system"


# ============================================================================
# Pipeline results
# ============================================================================


class ScoredArticle(BaseModel):
    """Article returned by similarity search with its blended relevance."""

    id: str
    title: str | None = None
    description: str | None = None
    content: str
    similarity: float = Field(..., description="Vector similarity from the store")
    relevance: float = Field(..., ge=0.0, le=1.0)


class CompetitorResearchResult(BaseModel):
    """URLs and competitor names discovered for a topic."""

    urls: list[str] = Field(default_factory=list)
    competitors: list[str] = Field(default_factory=list)


class ChatTurnResult(BaseModel):
    response: str | None = None
    escalated: bool = False
    status: ConversationStatus


# ============================================================================
# HTTP request / response bodies
# ============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateArticleRequest(_CamelModel):
    title: str | None = None
    description: str | None = None
    organization_id: str | None = Field(default=None, alias="organizationId")
    collection_id: str | None = Field(default=None, alias="collectionId")


class StoreEmbeddingsRequest(_CamelModel):
    article_id: str | None = Field(default=None, alias="articleId")
    content: str | None = None
    organization_id: str | None = Field(default=None, alias="organizationId")


class SearchSimilarRequest(_CamelModel):
    query: str | None = None
    organization_id: str | None = Field(default=None, alias="organizationId")


class GenerateResponseRequest(_CamelModel):
    question: str | None = None
    article_content: str | None = Field(default=None, alias="articleContent")


class CustomerMessageRequest(_CamelModel):
    content: str | None = None
    organization_id: str | None = Field(default=None, alias="organizationId")
    customer_id: str | None = Field(default=None, alias="customerId")


class StatusChangeRequest(BaseModel):
    status: ConversationStatus
