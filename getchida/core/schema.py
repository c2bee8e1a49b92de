"""Document store schema management (code-first approach).

Field names mirror the persisted document layout used by the web client, so
columns keep their camelCase spelling.
"""

import logging

from getchida.core import db_client


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = [
    "profiles",
    "chores",
]

ELEMENT_VALUES = ("air", "water", "earth", "fire")

_ELEMENT_CHECK = ", ".join(f"'{value}'" for value in ELEMENT_VALUES)

_TABLES: dict[str, str] = {
    "profiles": f"""
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            element TEXT NOT NULL CHECK (element IN ({_ELEMENT_CHECK})),
            chi INTEGER NOT NULL DEFAULT 0 CHECK (chi >= 0),
            stepsToday INTEGER NOT NULL DEFAULT 0 CHECK (stepsToday >= 0),
            avatarUrl TEXT,
            createdAt TEXT NOT NULL
        )
    """,
    # assignedTo is a plain id, not a foreign key: chores keep their assignee
    # snapshot even if the profile row disappears.
    "chores": f"""
        CREATE TABLE IF NOT EXISTS chores (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            assignedTo TEXT NOT NULL,
            assigneeName TEXT NOT NULL,
            assigneeAvatarUrl TEXT NOT NULL,
            dueDate TEXT NOT NULL,
            isCompleted INTEGER NOT NULL DEFAULT 0,
            elementType TEXT NOT NULL CHECK (elementType IN ({_ELEMENT_CHECK})),
            createdAt TEXT NOT NULL
        )
    """,
}

_INDEXES: dict[str, list[str]] = {
    "profiles": [
        "CREATE INDEX IF NOT EXISTS idx_profiles_created ON profiles (createdAt)",
    ],
    "chores": [
        "CREATE INDEX IF NOT EXISTS idx_chores_assignee ON chores (assignedTo, isCompleted, dueDate)",
        "CREATE INDEX IF NOT EXISTS idx_chores_element ON chores (elementType)",
    ],
}


async def init_db(*, db_path: str | None = None) -> None:
    """Create all collections and their indexes (idempotent).

    Args:
        db_path: Optional SQLite file path. If not provided, uses settings.sqlite_db_path.
    """
    logger.info("Starting schema sync...")
    conn = await db_client.get_connection(db_path=db_path)

    for collection_name in COLLECTIONS:
        await conn.execute(_TABLES[collection_name])
        for index_sql in _INDEXES.get(collection_name, []):
            await conn.execute(index_sql)
        logger.info("Collection %s is up to date", collection_name)

    await conn.commit()
    logger.info("Schema sync complete")
