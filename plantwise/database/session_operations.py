"""
Session Database Operations

CRUD and read-side aggregation for conversation sessions.

Session identifiers are trusted as supplied by the caller: a known id is
returned with its stored owner and no ownership check is made.
"""

import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .db_setup import get_db

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """Raised when a write references a session that does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


def _decode_metadata(raw: Optional[str]) -> Dict[str, Any]:
    return json.loads(raw or "{}")


async def create_session(
    user_id: str = "default",
    metadata: Optional[Dict[str, Any]] = None,
    session_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a new session.

    Args:
        user_id: Owning user identifier
        metadata: Free-form key/value mapping
        session_id: Caller-supplied identifier; a uuid4 is generated when omitted

    Returns:
        dict: session_id, user_id, created flag and timestamp. When the id
        already exists nothing is written, created is False and user_id is
        the stored owner.
    """
    session_id = session_id or str(uuid.uuid4())
    now = datetime.now().isoformat()

    async with get_db() as db:
        cursor = await db.execute(
            """
            INSERT OR IGNORE INTO sessions (id, user_id, created_at, updated_at, metadata)
            VALUES (?, ?, ?, ?, ?)
            """,
            (session_id, user_id, now, now, json.dumps(metadata or {}))
        )
        created = cursor.rowcount > 0

        if not created:
            cursor = await db.execute(
                "SELECT user_id FROM sessions WHERE id = ?",
                (session_id,)
            )
            row = await cursor.fetchone()
            user_id = row["user_id"]

        await db.commit()

    if created:
        logger.info(f"✓ Created session {session_id} for user {user_id}")
    else:
        logger.info(f"Session {session_id} already exists (owner {user_id})")

    return {
        "session_id": session_id,
        "user_id": user_id,
        "created": created,
        "timestamp": now,
    }


async def get_session(session_id: str) -> Optional[Dict[str, Any]]:
    """
    Get session details.

    Returns:
        dict with decoded metadata, or None if the session does not exist
    """
    async with get_db() as db:
        cursor = await db.execute(
            "SELECT * FROM sessions WHERE id = ?",
            (session_id,)
        )
        row = await cursor.fetchone()

    if not row:
        return None

    session = dict(row)
    session["metadata"] = _decode_metadata(session.get("metadata"))
    return session


async def get_or_create_session(
    session_id: Optional[str],
    user_id: str = "default",
) -> Dict[str, Any]:
    """
    Resolve a caller-supplied session id, creating the session when needed.

    - No id: behaves like create_session.
    - Unknown id: a session is inserted under that id for user_id.
    - Known id: the stored owner is returned and user_id is ignored.
    """
    if not session_id:
        created = await create_session(user_id)
        return {"session_id": created["session_id"], "user_id": user_id, "created": True}

    session = await get_session(session_id)
    if session:
        return {"session_id": session_id, "user_id": session["user_id"], "created": False}

    # A concurrent request may have inserted the same id since the read above
    created = await create_session(user_id, session_id=session_id)
    return {"session_id": session_id, "user_id": created["user_id"], "created": created["created"]}


async def update_session_timestamp(session_id: str, db=None) -> None:
    """Bump updated_at. Reuses the caller's connection when one is given."""
    now = datetime.now().isoformat()
    if db is not None:
        await db.execute(
            "UPDATE sessions SET updated_at = ? WHERE id = ?",
            (now, session_id)
        )
        return

    async with get_db() as conn:
        await conn.execute(
            "UPDATE sessions SET updated_at = ? WHERE id = ?",
            (now, session_id)
        )
        await conn.commit()


async def clear_session(session_id: str) -> Dict[str, Any]:
    """
    Delete all messages and interactions of a session, keeping the session row.

    Returns:
        dict: counts of deleted messages and interactions
    """
    async with get_db() as db:
        cursor = await db.execute(
            "DELETE FROM messages WHERE session_id = ?",
            (session_id,)
        )
        messages_deleted = cursor.rowcount

        cursor = await db.execute(
            "DELETE FROM agent_interactions WHERE session_id = ?",
            (session_id,)
        )
        interactions_deleted = cursor.rowcount

        await update_session_timestamp(session_id, db)
        await db.commit()

    logger.info(
        f"✓ Cleared session {session_id}: "
        f"{messages_deleted} messages, {interactions_deleted} interactions"
    )

    return {
        "session_id": session_id,
        "messages_deleted": messages_deleted,
        "interactions_deleted": interactions_deleted,
        "timestamp": datetime.now().isoformat(),
    }


async def delete_session(session_id: str) -> Dict[str, Any]:
    """Delete a session; messages and interactions go with it (ON DELETE CASCADE)."""
    async with get_db() as db:
        cursor = await db.execute(
            "DELETE FROM sessions WHERE id = ?",
            (session_id,)
        )
        deleted = cursor.rowcount > 0
        await db.commit()

    if deleted:
        logger.info(f"✓ Deleted session {session_id}")

    return {
        "session_id": session_id,
        "deleted": deleted,
        "timestamp": datetime.now().isoformat(),
    }


async def get_session_stats(session_id: str) -> Dict[str, Any]:
    """
    Aggregate message count, token usage and per-agent usage for a session.

    Returns:
        dict: session_id, message_count, total_tokens, agent_usage,
        created and last_updated (None when the session does not exist)
    """
    async with get_db() as db:
        cursor = await db.execute(
            """
            SELECT COUNT(*) as count, COALESCE(SUM(tokens_used), 0) as total
            FROM messages WHERE session_id = ?
            """,
            (session_id,)
        )
        totals = await cursor.fetchone()

        cursor = await db.execute(
            """
            SELECT agent_name, COUNT(*) as interactions, COALESCE(SUM(tokens_used), 0) as tokens
            FROM agent_interactions
            WHERE session_id = ?
            GROUP BY agent_name
            ORDER BY agent_name
            """,
            (session_id,)
        )
        agent_usage = [dict(row) for row in await cursor.fetchall()]

    session = await get_session(session_id)

    return {
        "session_id": session_id,
        "message_count": totals["count"],
        "total_tokens": totals["total"],
        "agent_usage": agent_usage,
        "created": session["created_at"] if session else None,
        "last_updated": session["updated_at"] if session else None,
    }


async def get_user_sessions(user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    """
    List a user's sessions, most recently updated first.

    Each entry carries its message_count.
    """
    async with get_db() as db:
        cursor = await db.execute(
            """
            SELECT id, created_at, updated_at, metadata,
                   (SELECT COUNT(*) FROM messages WHERE session_id = sessions.id) as message_count
            FROM sessions
            WHERE user_id = ?
            ORDER BY updated_at DESC
            LIMIT ?
            """,
            (user_id, limit)
        )
        rows = await cursor.fetchall()

    sessions = []
    for row in rows:
        session = dict(row)
        session["metadata"] = _decode_metadata(session.get("metadata"))
        sessions.append(session)
    return sessions


async def cleanup_old_sessions(days_old: int = 30) -> Dict[str, Any]:
    """
    Delete sessions not updated within the last days_old days.

    Returns:
        dict: number of deleted sessions
    """
    cutoff = (datetime.now() - timedelta(days=days_old)).isoformat()

    async with get_db() as db:
        cursor = await db.execute(
            "DELETE FROM sessions WHERE updated_at < ?",
            (cutoff,)
        )
        deleted = cursor.rowcount
        await db.commit()

    logger.info(f"✓ Cleaned up {deleted} sessions older than {days_old} days")

    return {
        "deleted_sessions": deleted,
        "timestamp": datetime.now().isoformat(),
    }
