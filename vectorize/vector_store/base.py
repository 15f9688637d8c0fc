"""Building blocks shared by the write-back strategies.

Values always travel as bound parameters. Names (schema, table, column) and
the key's cast type cannot be bound, so they are checked here before they are
placed into SQL text.
"""

import re
from typing import Iterable, Optional

import numpy as np

from vectorize.common.errors import MalformedJobError, PersistenceError

__all__ = [
    "SqlIdentifier",
    "check_target",
    "validate_sql_type",
    "serialize_vector",
    "MalformedJobError",
    "PersistenceError",
]

# NAMEDATALEN - 1; longer names are truncated by the server
MAX_IDENTIFIER_LEN = 63

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]{0,62}$")

# e.g. integer, bigint, text, uuid, character varying(255), numeric(10, 2),
# timestamp with time zone, int[], public.my_domain
_SQL_TYPE_RE = re.compile(
    r"^(?:[A-Za-z_][A-Za-z0-9_]*\.)?"
    r"[A-Za-z_][A-Za-z0-9_]*(?: [A-Za-z_][A-Za-z0-9_]*)*"
    r"(?:\(\s*\d+\s*(?:,\s*\d+\s*)?\))?"
    r"(?:\[\])?$"
)


class SqlIdentifier:
    """A schema, table, or column name that is safe to place in SQL text.

    Names are folded to lower case and double-quoted when rendered, which
    resolves to the same object Postgres would find for the unquoted name
    while still allowing names that collide with keywords.
    """

    __slots__ = ("name",)

    def __init__(self, name: str):
        if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
            raise MalformedJobError(f"Invalid SQL identifier: {name!r}")
        self.name = name.lower()

    def __str__(self) -> str:
        return f'"{self.name}"'

    def __repr__(self) -> str:
        return f"SqlIdentifier({self.name!r})"

    def suffixed(self, suffix: str) -> "SqlIdentifier":
        """Return the identifier ``<name><suffix>`` (e.g. ``_embeddings``).

        The result is cut to ``MAX_IDENTIFIER_LEN`` characters, the name the
        server resolves an over-long identifier to.
        """
        return SqlIdentifier(f"{self.name}{suffix}"[:MAX_IDENTIFIER_LEN])


def qualified(schema: SqlIdentifier, relation: SqlIdentifier) -> str:
    return f"{schema}.{relation}"


def validate_sql_type(type_name: str) -> str:
    """Return ``type_name`` unchanged if it looks like a SQL type name."""
    if not isinstance(type_name, str) or not _SQL_TYPE_RE.match(type_name.strip()):
        raise MalformedJobError(f"Invalid SQL type name: {type_name!r}")
    return type_name.strip()


def serialize_vector(values: Iterable[float]) -> str:
    """Render a vector in pgvector's text input form, ``[v1,v2,...]``.

    Non-finite values are rendered as-is; the database rejects them.
    """
    array = np.asarray(list(values), dtype=np.float64)
    return "[" + ",".join(repr(float(v)) for v in array.tolist()) + "]"


def check_target(
    schema: str,
    project: str,
    table: Optional[str] = None,
    pkey: Optional[str] = None,
    pkey_type: Optional[str] = None,
) -> None:
    """Validate every name a write would interpolate, before any work is done."""
    SqlIdentifier(schema)
    project_ident = SqlIdentifier(project)
    project_ident.suffixed("_embeddings")
    project_ident.suffixed("_updated_at")
    if table is not None:
        SqlIdentifier(table)
    if pkey is not None:
        SqlIdentifier(pkey)
    if pkey_type is not None:
        validate_sql_type(pkey_type)
