from typing import Any

import mysql.connector

from nanocore.core_services.Database import Database, DotDict
from nanocore.database.QueryBuilder import PLACEHOLDER


class MySqlDatabase(Database):
    """
    mysql-connector-python driver. Statements are written with ``:name``
    placeholders and translated to the connector's ``%(name)s`` style.
    """

    def open(self):
        return mysql.connector.connect(**self.connection_dict)

    def new_cursor(self):
        return self.connection.cursor(dictionary=True)

    def prepare(self, sql: str, params: dict[str, Any] | None) -> tuple[str, Any]:
        if not params:
            return sql, None
        # Literal percent signs only need escaping when the connector interpolates.
        sql = sql.replace("%", "%%")
        return PLACEHOLDER.sub(r"%(\1)s", sql), params

    def fetch_rows(self, cursor) -> list[DotDict]:
        if cursor.description is None:
            return []
        return [DotDict(row) for row in cursor.fetchall()]
