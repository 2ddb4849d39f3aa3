"""
PlantWise Database Package

Session store backed by aiosqlite:
- Conversation sessions
- Ordered message history
- Agent interaction audit trail
"""

from .db_setup import initialize_database, get_db, reset_database, get_database_stats
from .session_operations import (
    SessionNotFoundError,
    create_session,
    get_session,
    get_or_create_session,
    update_session_timestamp,
    clear_session,
    delete_session,
    get_session_stats,
    get_user_sessions,
    cleanup_old_sessions,
)
from .message_operations import (
    add_message,
    get_conversation_history,
    get_openai_history,
)
from .interaction_operations import record_agent_interaction

__all__ = [
    # Database setup
    "initialize_database",
    "get_db",
    "reset_database",
    "get_database_stats",

    # Session operations
    "SessionNotFoundError",
    "create_session",
    "get_session",
    "get_or_create_session",
    "update_session_timestamp",
    "clear_session",
    "delete_session",
    "get_session_stats",
    "get_user_sessions",
    "cleanup_old_sessions",

    # Message operations
    "add_message",
    "get_conversation_history",
    "get_openai_history",

    # Interaction operations
    "record_agent_interaction",
]
