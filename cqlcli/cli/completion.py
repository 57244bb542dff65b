"""Tab completion for CQL keywords, keyspaces and tables."""

import logging
from typing import Iterable, List, Optional, Set

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cqlcli.db.cluster import ClusterSession
from cqlcli.db.errors import CqlCliError
from cqlcli.db.types import Rows

logger = logging.getLogger(__name__)

CQL_KEYWORDS = [
    # DML
    "SELECT", "INSERT", "UPDATE", "DELETE", "TRUNCATE",
    "FROM", "WHERE", "SET", "VALUES", "INTO",
    "ORDER BY", "GROUP BY", "LIMIT", "ALLOW FILTERING",
    # DDL
    "CREATE", "ALTER", "DROP", "USE",
    "KEYSPACE", "TABLE", "INDEX", "TYPE", "MATERIALIZED VIEW",
    "WITH", "AND", "PRIMARY KEY", "CLUSTERING ORDER",
    # Data types
    "TEXT", "INT", "BIGINT", "FLOAT", "DOUBLE", "BOOLEAN",
    "UUID", "TIMEUUID", "TIMESTAMP", "DATE", "TIME",
    "BLOB", "COUNTER", "DECIMAL", "VARINT",
    "LIST", "MAP", "TUPLE", "FROZEN",
    # Other
    "IF", "EXISTS", "NOT EXISTS", "AS", "IN",
    "DISTINCT", "COUNT", "TOKEN", "TTL", "WRITETIME",
    "DESCRIBE", "DESC", "KEYSPACES", "TABLES", "TYPES",
    "BEGIN", "BATCH", "APPLY", "UNLOGGED",
    "CONSISTENCY", "GRANT", "REVOKE", "PERMISSIONS",
]

KEYSPACES_QUERY = "SELECT keyspace_name FROM system_schema.keyspaces;"
TABLES_QUERY = "SELECT keyspace_name, table_name FROM system_schema.tables;"


class CqlCompleter(Completer):
    """Completes the word under the cursor.

    Keywords always match. Keyspace names are offered after ``USE`` or
    ``KEYSPACE`` and table names after ``FROM``, ``INTO`` or ``TABLE``.
    """

    def __init__(self, keywords: Optional[Iterable[str]] = None):
        self.keywords: List[str] = list(keywords or CQL_KEYWORDS)
        self.keyspaces: Set[str] = set()
        self.tables: Set[str] = set()

    def update_schema(self, keyspaces: Iterable[str], tables: Iterable[str]) -> None:
        self.keyspaces = set(keyspaces)
        self.tables = set(tables)

    def refresh(self, session: ClusterSession) -> bool:
        """Reload keyspace and table names. Returns False if a query failed."""
        try:
            keyspaces = _first_column(session.execute(KEYSPACES_QUERY), 0)
            tables = _first_column(session.execute(TABLES_QUERY), 1)
        except CqlCliError as exc:
            logger.debug("Schema refresh failed: %s", exc)
            return False
        if keyspaces is None or tables is None:
            return False
        self.update_schema(keyspaces, tables)
        logger.debug(
            "Loaded %d keyspace(s) and %d table(s) for completion",
            len(self.keyspaces),
            len(self.tables),
        )
        return True

    def candidates(self, line: str) -> List[str]:
        words = line.split()
        if not words or line[-1:].isspace():
            return []
        word = words[-1].upper()
        upper = line.upper()
        matches = [k for k in self.keywords if k.startswith(word)]
        if "USE " in upper or "KEYSPACE " in upper:
            matches.extend(sorted(k for k in self.keyspaces if k.upper().startswith(word)))
        if "FROM " in upper or "INTO " in upper or "TABLE " in upper:
            matches.extend(sorted(t for t in self.tables if t.upper().startswith(word)))
        return matches

    def get_completions(self, document: Document, complete_event):
        line = document.text_before_cursor
        word = document.get_word_before_cursor(WORD=True)
        for candidate in self.candidates(line):
            yield Completion(candidate, start_position=-len(word))


def _first_column(outcome, index: int) -> Optional[List[str]]:
    if not isinstance(outcome, Rows):
        return None
    names: List[str] = []
    for row in outcome.result:
        if len(row) > index and not row[index].is_null:
            names.append(str(row[index].value))
    return names
