"""SQLite-backed document store client with CRUD operations.

Collections are tables whose rows are flat documents. Record ids are opaque
hex strings generated on insert. Every mutation publishes the collection name
on the change feed so live queries can refresh.
"""

import asyncio
import json
import logging
import re
import threading
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from getchida.core.change_feed import change_feed
from getchida.core.config import settings
from getchida.core.errors import DatabaseError, RecordNotFoundError


logger = logging.getLogger(__name__)

__all__ = [
    "DatabaseError",
    "RecordNotFoundError",
    "close_connection",
    "create_record",
    "delete_record",
    "get_connection",
    "get_record",
    "increment_field",
    "init_db",
    "list_records",
    "parse_filter",
    "sanitize_param",
    "update_record",
    "update_record_if",
]

# Columns stored as INTEGER 0/1 that documents expose as booleans
_BOOL_FIELDS = frozenset({"isCompleted"})

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_identifier(name: str, kind: str = "collection") -> None:
    """Validate that a collection or field name contains only alphanumeric characters and underscores."""
    if not _IDENTIFIER.match(name):
        msg = f"Invalid {kind} name: {name}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _encode_value(value: Any) -> Any:  # noqa: ANN401
    """Convert a document value to its SQLite column representation."""
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def _decode_record(record: dict[str, Any]) -> dict[str, Any]:
    """Convert SQLite column values back to document values."""
    decoded = record.copy()
    for key in _BOOL_FIELDS & decoded.keys():
        if decoded[key] is not None:
            decoded[key] = bool(decoded[key])
    return decoded


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str) -> str | int | float | bool:
    """Parse a filter literal to the appropriate Python type for SQLite."""
    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


_COMPARISON = re.compile(r"""^(\w+)\s*(=|!=|>=|<=|>|<)\s*(['"])(.*)\3$""")


def _unescape(raw_value: str) -> str:
    """Reverse the JSON string escaping applied by sanitize_param."""
    try:
        return json.loads(f'"{raw_value}"')
    except json.JSONDecodeError:
        return raw_value


def parse_filter(filter_query: str) -> tuple[str, list[str | int | float | bool]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Grammar: ``field op "value"`` comparisons joined with ``&&``, where op is
    one of ``=``, ``!=``, ``>``, ``<``, ``>=``, ``<=``.
    """
    if not filter_query.strip():
        return "", []

    conditions = []
    params: list[str | int | float | bool] = []

    for raw_part in filter_query.split("&&"):
        part = raw_part.strip()
        match = _COMPARISON.match(part)
        if not match:
            msg = f"Invalid filter syntax: {part}"
            raise ValueError(msg)

        field, op, _quote, raw_value = match.groups()
        _validate_identifier(field, kind="field")
        conditions.append(f"{field} {op} ?")
        params.append(_parse_value(_unescape(raw_value)))

    return " AND ".join(conditions), params


def _parse_sort(sort: str) -> str:
    """Validate a ``column [ASC|DESC]`` sort clause, falling back to insertion order."""
    if not sort:
        return "rowid ASC"
    sort_pattern = re.match(r"^([A-Za-z_][A-Za-z0-9_]*)\s*(ASC|DESC)?$", sort.strip(), re.IGNORECASE)
    if not sort_pattern:
        logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
        return "rowid ASC"
    column, direction = sort_pattern.groups()
    # rowid keeps equal sort keys in insertion order
    return f"{column} {(direction or 'ASC').upper()}, rowid ASC"


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    async with _db_lock:
        conn = _db_connections.pop(cache_key, None)
    if conn is None:
        return

    try:
        await conn.close()
        logger.info("Closed SQLite connection", extra={"db_path": str(path)})
    except aiosqlite.Error as e:
        logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": str(path)})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from getchida.core import schema  # schema imports this module

    await schema.init_db(db_path=db_path)


def _wrap_error(e: Exception, action: str, collection: str) -> DatabaseError:
    if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
        return DatabaseError(f"Collection '{collection}' does not exist. Call init_db() first.")
    return DatabaseError(f"Failed to {action} {collection}: {e}")


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new document and return it with its generated id."""
    try:
        _validate_identifier(collection)
        conn = await get_connection()

        record_id = uuid.uuid4().hex
        document = {"id": record_id, **data}
        for key in document:
            _validate_identifier(key, kind="field")

        columns_str = ", ".join(document)
        placeholders_str = ", ".join("?" for _ in document)
        values = [_encode_value(v) for v in document.values()]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - identifiers are validated
        await conn.execute(query, values)
        await conn.commit()
    except Exception as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error(e, "create record in", collection) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    change_feed.publish(collection)
    return await get_record(collection=collection, record_id=record_id)


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single document by id, raising RecordNotFoundError if it is missing."""
    try:
        _validate_identifier(collection)
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (record_id,))
        row = await cursor.fetchone()
        columns = [description[0] for description in cursor.description]
    except Exception as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error(e, "get record from", collection) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _decode_record(dict(zip(columns, row, strict=True)))


async def _execute_update(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    expected: dict[str, Any] | None = None,
) -> int:
    """Run an UPDATE on one document and return the affected row count."""
    try:
        _validate_identifier(collection)
        conn = await get_connection()

        for key in [*data, *(expected or {})]:
            _validate_identifier(key, kind="field")

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_encode_value(v) for v in data.values()]

        where_clause = "id = ?"
        values.append(record_id)
        for key, val in (expected or {}).items():
            where_clause += f" AND {key} = ?"
            values.append(_encode_value(val))

        query = f"UPDATE {collection} SET {set_clause} WHERE {where_clause}"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        return cursor.rowcount
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error(e, "update record in", collection) from e


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Overwrite the given fields of a document and return the updated document."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    rowcount = await _execute_update(collection=collection, record_id=record_id, data=data)
    if rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    change_feed.publish(collection)
    return await get_record(collection=collection, record_id=record_id)


async def update_record_if(
    *,
    collection: str,
    record_id: str,
    data: dict[str, Any],
    expected: dict[str, Any],
) -> bool:
    """Compare-and-set: apply ``data`` only if the document currently matches ``expected``.

    Returns:
        True if the document was updated, False if it exists but did not match.

    Raises:
        RecordNotFoundError: If the document does not exist
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    rowcount = await _execute_update(collection=collection, record_id=record_id, data=data, expected=expected)
    if rowcount == 0:
        # Distinguish "condition not met" from "no such document"
        await get_record(collection=collection, record_id=record_id)
        logger.info("Conditional update skipped", extra={"collection": collection, "record_id": record_id})
        return False

    logger.info("Conditionally updated record", extra={"collection": collection, "record_id": record_id})
    change_feed.publish(collection)
    return True


async def increment_field(*, collection: str, record_id: str, field: str, amount: int) -> int:
    """Atomically add ``amount`` to a numeric field and return the new value."""
    try:
        _validate_identifier(collection)
        _validate_identifier(field, kind="field")
        conn = await get_connection()

        query = f"UPDATE {collection} SET {field} = COALESCE({field}, 0) + ? WHERE id = ? RETURNING {field}"  # noqa: S608 - identifiers are validated
        cursor = await conn.execute(query, (amount, record_id))
        row = await cursor.fetchone()
        await cursor.close()
        await conn.commit()
    except Exception as e:
        logger.error(
            "increment_field_failed",
            extra={"collection": collection, "record_id": record_id, "field": field, "error": str(e)},
        )
        raise _wrap_error(e, "increment field in", collection) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info(
        "Incremented field",
        extra={"collection": collection, "record_id": record_id, "field": field, "amount": amount},
    )
    change_feed.publish(collection)
    return row[0]


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a document by id, raising RecordNotFoundError if it is missing."""
    try:
        _validate_identifier(collection)
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (record_id,))
        await conn.commit()
        rowcount = cursor.rowcount
    except Exception as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        raise _wrap_error(e, "delete record from", collection) from e

    if rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    change_feed.publish(collection)


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List documents with optional filtering, sorting, and pagination."""
    try:
        _validate_identifier(collection)
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)
        where_sql = f"WHERE {where_clause}" if where_clause else ""
        order_sql = _parse_sort(sort)
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_sql} ORDER BY {order_sql} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, [*params, per_page, offset])
        rows = await cursor.fetchall()

        columns = [description[0] for description in cursor.description]
        records = [_decode_record(dict(zip(columns, row, strict=True))) for row in rows]
    except Exception as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        raise _wrap_error(e, "list records from", collection) from e

    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records
