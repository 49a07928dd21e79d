"""
Coach Tracker Dedup - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/coach_tracker.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    LOG_TO_FILE: bool = Field(default=True)

    # School matching thresholds
    ORG_SIMILARITY_THRESHOLD: float = Field(default=0.90)
    ORG_CONTAINMENT_RATIO: float = Field(default=0.60)

    # Coach matching thresholds (edit distance)
    FIRST_NAME_MAX_DISTANCE: int = Field(default=2)
    LAST_NAME_MAX_DISTANCE: int = Field(default=1)

    # School lookup threshold (0-100 for rapidfuzz)
    LOOKUP_MATCH_THRESHOLD: int = Field(default=85)

    # Candidate generation
    CANDIDATE_WORKERS: int = Field(default=1)
    MAX_PAIR_COMPARISONS: int = Field(default=5_000_000)
    BLOCK_ORGANIZATIONS_BY_STATE: bool = Field(default=False)

    # Record store
    STORE_PAGE_SIZE: int = Field(default=1000)
    STORE_TIMEOUT_SECONDS: float = Field(default=30.0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
