"""
Agent Interaction Operations

Audit trail of routed requests: one record per request, success or failure.
Independent of the message log.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import aiosqlite

from .db_setup import get_db
from .session_operations import SessionNotFoundError

logger = logging.getLogger(__name__)


async def record_agent_interaction(
    session_id: str,
    agent_name: str,
    input_text: Optional[str],
    output_text: Optional[str],
    tokens_used: int = 0,
    success: bool = True,
    error_message: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Record the outcome of one agent call.

    Args:
        session_id: Owning session
        agent_name: Agent that handled (or failed) the request
        input_text: What was sent to the agent
        output_text: What came back; None on failure
        tokens_used: Tokens consumed
        success: Whether the call succeeded
        error_message: Failure description
        metadata: Extra context (handoff decision, analysis type, ...)

    Returns:
        dict: interaction_id, session_id, agent_name, success, timestamp

    Raises:
        SessionNotFoundError: If the session does not exist
    """
    created_at = datetime.now().isoformat()

    async with get_db() as db:
        try:
            cursor = await db.execute(
                """
                INSERT INTO agent_interactions (
                    session_id, agent_name, input_text, output_text,
                    tokens_used, success, error_message, created_at, metadata
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    agent_name,
                    input_text,
                    output_text,
                    tokens_used,
                    1 if success else 0,
                    error_message,
                    created_at,
                    json.dumps(metadata or {}),
                )
            )
        except aiosqlite.IntegrityError as e:
            raise SessionNotFoundError(session_id) from e
        interaction_id = cursor.lastrowid
        await db.commit()

    if not success:
        logger.warning(f"Recorded failed {agent_name} interaction for session {session_id}: {error_message}")

    return {
        "interaction_id": interaction_id,
        "session_id": session_id,
        "agent_name": agent_name,
        "success": success,
        "timestamp": created_at,
    }
