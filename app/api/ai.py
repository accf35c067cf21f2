"""API endpoints for the help center content pipeline."""

from fastapi import APIRouter, Depends, HTTPException

from app.core.article_embeddings import store_article_embeddings
from app.core.article_generator import generate_enhanced_article
from app.core.auth_middleware import AuthContext, require_user
from app.core.deflection import generate_chat_response
from app.core.exceptions import HelpdeskError, ValidationError
from app.core.logging import get_logger
from app.core.schemas_helpdesk import (
    GenerateArticleRequest,
    GenerateResponseRequest,
    SearchSimilarRequest,
    StoreEmbeddingsRequest,
)
from app.core.similarity_search import find_similar_articles

logger = get_logger(__name__)

router = APIRouter()


def _require(message: str, *values: str | None) -> None:
    """400 unless every value is present and non-blank."""
    if any(v is None or not str(v).strip() for v in values):
        error = ValidationError(message)
        raise HTTPException(status_code=error.status_code, detail=error.public_message) from error


@router.post("/generate-enhanced-article")
async def generate_enhanced_article_endpoint(
    request: GenerateArticleRequest,
    auth: AuthContext = Depends(require_user),
) -> dict:
    """
    Generate a researched, brand-voice article.

    Raises:
        HTTPException 400: If title or organizationId is missing
        HTTPException 500: If generation fails
    """
    _require("Title and organization ID are required", request.title, request.organization_id)

    try:
        content = await generate_enhanced_article(
            title=request.title,
            description=request.description or "",
            organization_id=request.organization_id,
            collection_id=request.collection_id,
        )
    except Exception as e:
        logger.exception(
            "Enhanced article generation failed",
            extra={"organization_id": request.organization_id},
        )
        raise HTTPException(status_code=500, detail="Failed to generate article") from e

    return {"content": content}


@router.post("/store-embeddings")
async def store_embeddings_endpoint(
    request: StoreEmbeddingsRequest,
    auth: AuthContext = Depends(require_user),
) -> dict:
    """
    Regenerate embedding chunks for an article.

    Raises:
        HTTPException 400: If articleId, content or organizationId is missing
        HTTPException 500: If embedding or storage fails
    """
    _require(
        "Article ID, content, and organization ID are required",
        request.article_id,
        request.content,
        request.organization_id,
    )

    try:
        await store_article_embeddings(
            request.article_id, request.content, request.organization_id
        )
    except Exception as e:
        logger.exception(
            "Storing embeddings failed",
            extra={"organization_id": request.organization_id},
        )
        raise HTTPException(status_code=500, detail="Failed to store embeddings") from e

    return {"success": True}


@router.post("/search-similar")
async def search_similar_endpoint(request: SearchSimilarRequest) -> dict:
    """
    Find the organization's articles that best match a query. Public.

    Raises:
        HTTPException 400: If query or organizationId is missing
        HTTPException 504: If the query embedding timed out
        HTTPException 500: If the search fails
    """
    _require("Query and organization ID are required", request.query, request.organization_id)

    try:
        articles = await find_similar_articles(request.query, request.organization_id)
    except HelpdeskError as e:
        logger.error(
            f"Similarity search failed: {e}",
            extra={"organization_id": request.organization_id},
        )
        raise HTTPException(status_code=e.status_code, detail="Failed to search articles") from e

    return {"articles": [a.model_dump() for a in articles]}


@router.post("/generate-response")
async def generate_response_endpoint(request: GenerateResponseRequest) -> dict:
    """
    Answer a customer question from an article. Public.

    Raises:
        HTTPException 400: If question is missing
        HTTPException 500: If the model call fails
    """
    _require("Question is required", request.question)

    try:
        response = await generate_chat_response(request.question, request.article_content or "")
    except Exception as e:
        logger.exception("Chat response generation failed")
        raise HTTPException(status_code=500, detail="Failed to generate response") from e

    return {"response": response}
