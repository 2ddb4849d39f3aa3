"""
PlantWise Configuration

Environment-driven settings (.env supported via python-dotenv).
"""

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    """Runtime settings resolved from the environment."""
    app_name: str = "PlantWise Nutrition Agents API"

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    # Networking
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Storage
    database_path: str = "data/sessions.db"

    # Nutrition protocol
    sodium_limit: int = 1500  # mg per day
    nutrition_mode: str = "reversal"

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024

    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        database_path=os.getenv("DATABASE_PATH", "data/sessions.db"),
        sodium_limit=int(os.getenv("SODIUM_LIMIT", "1500")),
        nutrition_mode=os.getenv("NUTRITION_MODE", "reversal"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
