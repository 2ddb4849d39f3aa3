"""
Shared OpenAI client helpers for the specialized agents.
"""

import logging
from typing import Any, Optional

from openai import AsyncOpenAI

from plantwise.config import get_settings

logger = logging.getLogger(__name__)


def create_openai_client(openai_api_key: Optional[str] = None) -> AsyncOpenAI:
    """Build an AsyncOpenAI client from an explicit key or OPENAI_API_KEY."""
    api_key = openai_api_key or get_settings().openai_api_key
    if not api_key:
        raise ValueError("OPENAI_API_KEY not found")
    return AsyncOpenAI(api_key=api_key)


def total_tokens(response: Any) -> int:
    """Total tokens reported by a chat completion (0 when usage is absent)."""
    usage = getattr(response, "usage", None)
    return getattr(usage, "total_tokens", 0) or 0
