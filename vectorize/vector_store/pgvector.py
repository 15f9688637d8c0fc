"""Write-back of embeddings into pgvector tables.

Two strategies, selected per job:

- append: ``<project>_embeddings`` and ``<project>_updated_at`` columns on the
  source table are updated one row at a time.
- join: rows are upserted into ``<schema>.<project>_embeddings(record_id,
  embeddings)`` with a single multi-row statement.

Both overwrite by key, so replaying a job leaves the same final state.
"""

from typing import Any, List, Sequence, Tuple

import asyncpg
import structlog

from vectorize.types import PairedEmbedding

from .base import PersistenceError, SqlIdentifier, qualified, serialize_vector, validate_sql_type

logger = structlog.get_logger("vectorize.vector_store.pgvector")

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def build_append_query(
    schema: str,
    table: str,
    project: str,
    pkey: str,
    pkey_type: str,
) -> str:
    """Build the per-row UPDATE for the append strategy.

    ``$1`` is the serialized vector, ``$2`` the record's key.
    """
    project_ident = SqlIdentifier(project)
    target = qualified(SqlIdentifier(schema), SqlIdentifier(table))
    return (
        f"UPDATE {target} SET "
        f"{project_ident.suffixed('_embeddings')} = $1::text::vector, "
        f"{project_ident.suffixed('_updated_at')} = (now() at time zone 'utc') "
        f"WHERE {SqlIdentifier(pkey)} = $2::text::{validate_sql_type(pkey_type)}"
    )


def build_upsert_query(
    schema: str,
    project: str,
    embeddings: Sequence[PairedEmbedding],
    pkey_type: str = "text",
) -> Tuple[str, List[Any]]:
    """Build the multi-row upsert for the join strategy.

    Returns the query and its flat parameter list, two values per row. Keys
    are bound as text and cast to ``pkey_type`` to match ``record_id``.
    """
    target = qualified(SqlIdentifier(schema), SqlIdentifier(project).suffixed("_embeddings"))
    key_type = validate_sql_type(pkey_type)
    groups = []
    params: List[Any] = []
    for index, pair in enumerate(embeddings):
        groups.append(f"(${2 * index + 1}::text::{key_type}, ${2 * index + 2}::text::vector)")
        params.extend([pair.primary_key, serialize_vector(pair.embeddings)])

    query = (
        f"INSERT INTO {target} (record_id, embeddings) VALUES "
        + ", ".join(groups)
        + " ON CONFLICT (record_id) DO UPDATE SET embeddings = EXCLUDED.embeddings"
    )
    return query, params


async def update_append_table(
    pool: asyncpg.Pool,
    embeddings: Sequence[PairedEmbedding],
    schema: str,
    table: str,
    project: str,
    pkey: str,
    pkey_type: str,
) -> int:
    """Update embedding columns on the source table, one row per pair.

    Stops at the first failing row; rows already updated stay updated.
    Returns the number of rows written.
    """
    query = build_append_query(schema, table, project, pkey, pkey_type)
    written = 0
    try:
        async with pool.acquire() as conn:
            for pair in embeddings:
                await conn.execute(query, serialize_vector(pair.embeddings), pair.primary_key)
                written += 1
    except _DB_ERRORS as e:
        logger.error(
            "Append update failed",
            schema=schema,
            table=table,
            project=project,
            written=written,
            error=str(e),
        )
        raise PersistenceError(f"Failed to update {schema}.{table}: {e}") from e
    return written


async def upsert_embedding_table(
    pool: asyncpg.Pool,
    schema: str,
    project: str,
    embeddings: Sequence[PairedEmbedding],
    pkey_type: str = "text",
) -> int:
    """Upsert all pairs into the project's embeddings table in one statement.

    Returns the number of rows in the batch.
    """
    if not embeddings:
        return 0

    query, params = build_upsert_query(schema, project, embeddings, pkey_type)
    try:
        async with pool.acquire() as conn:
            await conn.execute(query, *params)
    except _DB_ERRORS as e:
        logger.error(
            "Embedding upsert failed",
            schema=schema,
            project=project,
            rows=len(embeddings),
            error=str(e),
        )
        raise PersistenceError(f"Failed to upsert {schema}.{project}_embeddings: {e}") from e
    return len(embeddings)
