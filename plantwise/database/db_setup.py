"""
Database Setup and Initialization

Creates the SQLite database holding conversation sessions, their messages and
the agent interaction audit trail. Uses aiosqlite for async operations.
"""

import aiosqlite
import logging
from pathlib import Path
from typing import Optional
from contextlib import asynccontextmanager

from plantwise.config import get_settings

logger = logging.getLogger(__name__)

# Database file location
DB_PATH = Path(get_settings().database_path)


async def initialize_database(db_path: Optional[Path] = None) -> None:
    """
    Initialize SQLite database with all required tables.

    Creates tables for:
    - sessions: Conversation threads owned by a user
    - messages: Ordered conversational turns within a session
    - agent_interactions: One audit record per routed request

    Args:
        db_path: Optional custom database path
    """
    path = Path(db_path or DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Initializing database at: {path}")

    async with aiosqlite.connect(path) as db:
        await db.execute("PRAGMA foreign_keys = ON")

        await db.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                metadata TEXT DEFAULT '{}'
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                agent_name TEXT,
                tokens_used INTEGER DEFAULT 0 CHECK(tokens_used >= 0),
                created_at TEXT NOT NULL,
                metadata TEXT DEFAULT '{}',
                FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS agent_interactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                agent_name TEXT NOT NULL,
                input_text TEXT,
                output_text TEXT,
                tokens_used INTEGER DEFAULT 0,
                success BOOLEAN DEFAULT 1,
                error_message TEXT,
                created_at TEXT NOT NULL,
                metadata TEXT DEFAULT '{}',
                FOREIGN KEY (session_id) REFERENCES sessions(id) ON DELETE CASCADE
            )
        """)

        # Indexes for ordered retrieval and per-session lookups
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_session_id ON messages(session_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_created_at ON messages(created_at)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_agent_interactions_session_id ON agent_interactions(session_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_sessions_updated_at ON sessions(updated_at)"
        )

        await db.commit()
        logger.info("✓ Database tables created successfully")


@asynccontextmanager
async def get_db(db_path: Optional[Path] = None):
    """
    Async context manager for database connections.

    Usage:
        async with get_db() as db:
            await db.execute(...)

    Args:
        db_path: Optional custom database path

    Yields:
        aiosqlite.Connection: Database connection
    """
    path = db_path or DB_PATH
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row  # Enable dict-like row access
    await db.execute("PRAGMA foreign_keys = ON")

    try:
        yield db
    finally:
        await db.close()


async def reset_database(db_path: Optional[Path] = None) -> None:
    """
    Drop all tables and reinitialize database.

    WARNING: This deletes all data!
    """
    path = db_path or DB_PATH
    logger.warning(f"⚠️ Resetting database at: {path}")

    async with aiosqlite.connect(path) as db:
        await db.execute("DROP TABLE IF EXISTS agent_interactions")
        await db.execute("DROP TABLE IF EXISTS messages")
        await db.execute("DROP TABLE IF EXISTS sessions")
        await db.commit()

    await initialize_database(db_path)
    logger.info("✓ Database reset complete")


async def get_database_stats() -> dict:
    """
    Get statistics about the database.

    Returns:
        dict: Row counts for sessions, messages and agent interactions
    """
    async with get_db() as db:
        cursor = await db.execute("SELECT COUNT(*) as count FROM sessions")
        session_count = (await cursor.fetchone())["count"]

        cursor = await db.execute("SELECT COUNT(*) as count FROM messages")
        message_count = (await cursor.fetchone())["count"]

        cursor = await db.execute("SELECT COUNT(*) as count FROM agent_interactions")
        interaction_count = (await cursor.fetchone())["count"]

        return {
            "sessions": session_count,
            "messages": message_count,
            "interactions": interaction_count,
            "database_path": str(DB_PATH),
        }


# =============================================================================
# CLI
# =============================================================================

if __name__ == "__main__":
    import asyncio

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    async def _init():
        await initialize_database()
        stats = await get_database_stats()
        logger.info(
            f"✓ {stats['database_path']}: {stats['sessions']} sessions, "
            f"{stats['messages']} messages, {stats['interactions']} interactions"
        )

    asyncio.run(_init())
