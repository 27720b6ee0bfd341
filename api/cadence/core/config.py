from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from pathlib import Path
from typing import List, Optional
import logging
import os

_logger = logging.getLogger(__name__)

# Look for .env in api directory (parent of cadence directory)
api_dir = Path(__file__).parent.parent.parent
env_path = api_dir / ".env"

if env_path.exists():
    load_dotenv(env_path, override=False)
    _logger.info(f"Loaded .env file from: {env_path}")
elif Path(".env").exists():
    load_dotenv(Path(".env"), override=False)
    _logger.info(f"Loaded .env file from: {Path('.env').absolute()}")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = ""

    # API
    api_v1_prefix: str = "/api/v1"
    environment: str = "production"
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["*"]

    # Scheduling
    desired_retention: float = 0.9
    minimum_interval_days: int = 1
    maximum_interval_days: int = 36500
    relearn_interval_days: int = 1
    graduating_reps: int = 2  # Consecutive correct reviews needed to leave learning/relearning
    enable_fuzz: bool = True
    fsrs_weights: Optional[List[float]] = None  # 21 values; None uses the published FSRS-6 defaults

    # Due selection
    candidate_limit: int = 25
    phrasing_limit: int = 50
    recent_interaction_limit: int = 10
    urgency_delta: float = 0.05

    # Raise instead of clamping when a stats delta would drive a counter negative
    strict_stats_invariants: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False

    def __init__(self, **kwargs):
        # Hosting platforms provide DATABASE_URL uppercase
        if not kwargs.get("database_url"):
            kwargs["database_url"] = os.getenv("DATABASE_URL", "")
        super().__init__(**kwargs)

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")


# Create settings instance
settings = Settings()

# Validate required DATABASE_URL
if not settings.database_url:
    raise ValueError("DATABASE_URL environment variable is required")
