"""Configuration management for the Help Center AI server."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")

    # Web search (optional - research tiers degrade without it)
    TAVILY_API_KEY: str | None = Field(default=None, description="Tavily search API key")
    TAVILY_BASE_URL: str = Field(default="https://api.tavily.com", description="Tavily API base URL")

    # Run tracing (optional - runs are offline without it)
    LANGSMITH_API_KEY: str | None = Field(default=None, description="LangSmith API key")
    LANGSMITH_PROJECT: str = Field(default="help-center-ai", description="LangSmith project name")

    # Environment
    HELPDESK_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")
    PORT: int = Field(default=3001, description="HTTP port")

    # Chat model configuration
    CHAT_MODEL: str = Field(default="gpt-4", description="Model for generation and chat")
    CHAT_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")
    EMBEDDING_TIMEOUT_SECONDS: float = Field(
        default=5.0, description="Bound on query embedding calls"
    )

    # Similarity search
    SIMILARITY_THRESHOLD: float = Field(default=0.5, description="Minimum vector similarity")
    SIMILARITY_MATCH_COUNT: int = Field(default=5, description="Nearest neighbours requested")
    SIMILARITY_TOP_K: int = Field(default=3, description="Articles returned to callers")
    SIMILARITY_STRATEGY: Literal["title_blend", "embedding_rerank"] = Field(
        default="title_blend",
        description="Ranking strategy: title_blend or embedding_rerank",
    )

    # Research and scraping
    SCRAPE_TIMEOUT_SECONDS: float = Field(default=15.0, description="Per-URL scrape bound")
    RESEARCH_CONTENT_BUDGET: int = Field(
        default=4000, description="Characters of competitor text fed to analysis"
    )
    MAX_SCRAPED_DOCUMENTS: int = Field(default=2, description="Documents kept after scraping")

    # Deflection
    MAX_FAILED_SEARCHES: int = Field(
        default=3, description="Consecutive empty searches before human handoff"
    )
    AI_AGENT_ID: str = Field(
        default="00000000-0000-0000-0000-00000000a11a",
        description="Identity recorded as assignee for AI-handled conversations",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
