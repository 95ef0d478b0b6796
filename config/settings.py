"""
Invoice Entity Matcher - Configuration

Loads settings from environment variables with sensible defaults.
"""

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # LLM API (arbitration)
    ANTHROPIC_API_KEY: str = Field(default="")
    ARBITRATION_MODEL: str = Field(default="claude-sonnet-4-20250514")
    ARBITRATION_MAX_TOKENS: int = Field(default=64)

    # Embeddings
    EMBEDDING_MODEL: str = Field(default="all-MiniLM-L6-v2")

    # Static fallback codes returned when no tier can decide
    FALLBACK_CARD_CODE: str = Field(default="V10000")
    FALLBACK_ITEM_CODE: str = Field(default="E10000")

    # Invoice lines resolved at the same time
    LINE_CONCURRENCY: int = Field(default=5)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
