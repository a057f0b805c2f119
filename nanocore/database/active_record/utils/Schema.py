"""
Runtime schema discovery.

Records never declare their columns: on construction they ask the live
connection what the bound table looks like. Engines answer through
incompatible statements, so a list of probes is tried in order and the first
one that yields column names wins.
"""
import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from nanocore.database.Exceptions import SchemaUnavailable, UnsafeClause
from nanocore.database.QueryBuilder import identifier

logger = logging.getLogger("nanocore.orm")


@dataclass(frozen=True)
class Schema:
    table: str
    fields: tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))

    def __contains__(self, name) -> bool:
        return name in self.fields

    def __iter__(self):
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def allows(self, name: str, primary_key: str) -> bool:
        """Writes are accepted for known columns and for the primary key."""
        return name in self.fields or name == primary_key


class SchemaProbe(Protocol):
    name: str

    def columns(self, db, table: str) -> list[str]:
        ...


class DescribeProbe:
    """MySQL / MariaDB: one row per column, name under ``Field``."""
    name = "describe"
    column_key = "Field"

    def statement(self, table: str) -> str:
        return f"DESCRIBE {table}"

    def columns(self, db, table: str) -> list[str]:
        rows = db.query(self.statement(table))
        return [row[self.column_key] for row in rows]


class PragmaProbe(DescribeProbe):
    """SQLite: ``PRAGMA table_info`` returns nothing at all for a missing table."""
    name = "pragma"
    column_key = "name"

    def statement(self, table: str) -> str:
        return f"PRAGMA table_info({table})"


DEFAULT_PROBES: tuple[SchemaProbe, ...] = (DescribeProbe(), PragmaProbe())


def get_table_fields(db, table: str, probes: Sequence[SchemaProbe] = DEFAULT_PROBES) -> list[str]:
    return list(introspect(db, table, probes).fields)


def introspect(db, table: str, probes: Sequence[SchemaProbe] = DEFAULT_PROBES) -> Schema:
    try:
        identifier(table, "table")
    except UnsafeClause as e:
        raise SchemaUnavailable(table, "invalid table name") from e

    last_error = None
    for probe in probes:
        try:
            fields = probe.columns(db, table)
        except Exception as e:
            logger.debug("Schema probe %s failed for %s: %s", probe.name, table, e)
            last_error = e
            continue

        if fields:
            logger.debug("Schema probe %s found %d columns for %s", probe.name, len(fields), table)
            return Schema(table, tuple(fields))
        logger.debug("Schema probe %s found no columns for %s", probe.name, table)

    reason = str(last_error) if last_error is not None else "no columns found"
    raise SchemaUnavailable(table, reason) from last_error
