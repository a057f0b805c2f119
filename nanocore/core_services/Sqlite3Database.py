import sqlite3

from nanocore.core_services.Database import Database, DotDict


def dict_factory(cursor, row):
    """Convert row to dictionary."""
    return DotDict({col[0]: row[idx] for idx, col in enumerate(cursor.description)})


class Sqlite3Database(Database):
    connection_string: str = ":memory:"

    def open(self):
        return sqlite3.connect(self.connection_string or ":memory:")

    def fetch_rows(self, cursor) -> list[DotDict]:
        if cursor.description is None:
            return []
        return [dict_factory(cursor, row) for row in cursor.fetchall()]
