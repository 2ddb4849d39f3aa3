"""
Message Database Operations

Append-only conversational turns within a session, plus history reads shaped
for the completion API.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiosqlite

from .db_setup import get_db
from .session_operations import SessionNotFoundError, update_session_timestamp

logger = logging.getLogger(__name__)


async def add_message(
    session_id: str,
    role: str,
    content: str,
    agent_name: Optional[str] = None,
    tokens_used: int = 0,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Append a message to a session and bump the session's updated_at.

    Both writes happen in one transaction.

    Args:
        session_id: Owning session
        role: user, assistant or system (by convention, not enforced)
        content: Message text
        agent_name: Agent that produced the message, if any
        tokens_used: Token count attributed to this message
        metadata: Free-form key/value mapping

    Returns:
        dict: Stored message with its id and timestamp

    Raises:
        SessionNotFoundError: If the session does not exist
    """
    created_at = datetime.now().isoformat()

    async with get_db() as db:
        try:
            await update_session_timestamp(session_id, db)
            cursor = await db.execute(
                """
                INSERT INTO messages (session_id, role, content, agent_name, tokens_used, created_at, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (session_id, role, content, agent_name, tokens_used, created_at, json.dumps(metadata or {}))
            )
        except aiosqlite.IntegrityError as e:
            raise SessionNotFoundError(session_id) from e
        message_id = cursor.lastrowid
        await db.commit()

    return {
        "message_id": message_id,
        "session_id": session_id,
        "role": role,
        "content": content,
        "agent_name": agent_name,
        "tokens_used": tokens_used,
        "timestamp": created_at,
    }


async def get_conversation_history(session_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    """
    Get up to limit messages of a session, oldest first.

    Returns:
        list of dicts: role, content, agent_name, tokens_used, created_at, metadata
    """
    async with get_db() as db:
        cursor = await db.execute(
            """
            SELECT role, content, agent_name, tokens_used, created_at, metadata
            FROM messages
            WHERE session_id = ?
            ORDER BY created_at ASC, id ASC
            LIMIT ?
            """,
            (session_id, limit)
        )
        rows = await cursor.fetchall()

    history = []
    for row in rows:
        message = dict(row)
        message["metadata"] = json.loads(message.get("metadata") or "{}")
        history.append(message)
    return history


async def get_openai_history(session_id: str, limit: int = 20) -> List[Dict[str, str]]:
    """
    Get the most recent limit messages in chronological order, as
    {"role", "content"} pairs ready for a chat completion request.
    """
    async with get_db() as db:
        cursor = await db.execute(
            """
            SELECT role, content FROM (
                SELECT id, role, content, created_at
                FROM messages
                WHERE session_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
            )
            ORDER BY created_at ASC, id ASC
            """,
            (session_id, limit)
        )
        rows = await cursor.fetchall()

    return [{"role": row["role"], "content": row["content"]} for row in rows]
