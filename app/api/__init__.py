"""API routers."""

from fastapi import APIRouter

from app.api import ai, conversations

router = APIRouter()

# Content pipeline: generation, embeddings, search, chat replies
router.include_router(ai.router, tags=["ai"])

# Conversation deflection and handoff
router.include_router(conversations.router, prefix="/conversations", tags=["conversations"])
