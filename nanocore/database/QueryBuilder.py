import re
from datetime import date, datetime
from typing import Any, Self

from nanocore.database.Exceptions import EmptyCondition, UnsafeClause

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
QUALIFIED_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
ORDER_TERM = re.compile(
    r"^([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?)(?:\s+(ASC|DESC))?$",
    re.IGNORECASE,
)
PLACEHOLDER = re.compile(r"(?<![:\w]):([A-Za-z_][A-Za-z0-9_]*)")


def identifier(name: str, clause: str = "identifier", qualified: bool = True) -> str:
    """
    Validate a table, column or alias name before it is interpolated into SQL.
    Values are always bound; identifiers cannot be, so they must look like one.
    """
    pattern = QUALIFIED_IDENTIFIER if qualified else IDENTIFIER
    if not isinstance(name, str) or not pattern.match(name):
        raise UnsafeClause(clause, name)
    return name


def order_by_clause(text: str) -> str:
    """
    Validate a raw ORDER BY fragment such as "created_at DESC, name".
    Only column references with an optional direction are accepted.
    """
    if not isinstance(text, str):
        raise UnsafeClause("ORDER BY", text)

    terms = []
    for part in text.split(","):
        match = ORDER_TERM.match(part.strip())
        if not match:
            raise UnsafeClause("ORDER BY", text)
        column, direction = match.groups()
        terms.append(f"{column} {direction.upper()}" if direction else column)
    return ", ".join(terms)


def limit_value(count: Any) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise UnsafeClause("LIMIT", count)
    return count


def placeholder_name(column: str, taken: dict[str, Any]) -> str:
    """
    Derive a named placeholder from a column reference.
    "orders.status" becomes "orders_status"; repeats get a numeric suffix.
    """
    base = re.sub(r"\W", "_", column)
    name = base
    suffix = 1
    while name in taken:
        name = f"{base}_{suffix}"
        suffix += 1
    return name


class QueryBuilder:
    """
    Renders SELECT / INSERT / UPDATE / DELETE statements for one table with
    named ``:placeholders``. Every value ends up in ``parameters``; only
    validated identifiers are written into the SQL text.
    """

    def __init__(self, table: str, columns: list[str] | None = None):
        self.__table__ = identifier(table, "table")
        self.columns = list(columns) if columns else ["*"]
        self.joins = []
        self.conditions: list[tuple[str, str]] = []
        self.parameters: dict[str, Any] = {}
        self.order_by_clause = None
        self.limit_count = None

    def clone(self) -> "QueryBuilder":
        cloned = self.__class__(self.__table__, self.columns[:])
        cloned.joins = self.joins[:]
        cloned.conditions = self.conditions[:]
        cloned.parameters = dict(self.parameters)
        cloned.order_by_clause = self.order_by_clause
        cloned.limit_count = self.limit_count
        return cloned

    def join(self, descriptor) -> Self:
        self.joins.append(descriptor)
        return self

    def where(self, column, value: Any = None) -> Self:
        if isinstance(column, dict):
            for col, val in column.items():
                self.where(col, val)
            return self

        identifier(column, "WHERE column")
        name = placeholder_name(column, self.parameters)
        self.conditions.append(("AND", f"{column} = :{name}"))
        self.parameters[name] = value
        return self

    def order_by(self, clause: str | None) -> Self:
        if clause:
            self.order_by_clause = order_by_clause(clause)
        return self

    def limit(self, count: int | None) -> Self:
        if count is not None:
            self.limit_count = limit_value(count)
        return self

    # --------------------------------------------------------------------------
    # Rendering
    # --------------------------------------------------------------------------

    def _build_columns(self) -> str:
        columns = list(self.columns)
        for descriptor in self.joins:
            columns.extend(descriptor.select_columns())
        return ", ".join(columns)

    def _build_joins(self) -> str:
        return " ".join(descriptor.clause(self.__table__) for descriptor in self.joins)

    def _build_conditions(self) -> str:
        if not self.conditions:
            return ""
        result = " ".join(f"{logic} {expr}" for logic, expr in self.conditions)
        if result.startswith("AND "):
            result = result[4:]
        return " WHERE " + result

    def to_sql(self) -> str:
        sql = f"SELECT {self._build_columns()} FROM {self.__table__}"
        if self.joins:
            sql += " " + self._build_joins()
        sql += self._build_conditions()
        if self.order_by_clause:
            sql += f" ORDER BY {self.order_by_clause}"
        if self.limit_count is not None:
            sql += f" LIMIT {self.limit_count}"
        return sql

    def get(self) -> tuple[str, dict[str, Any]]:
        return self.to_sql(), dict(self.parameters)

    def insert(self, data: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """
        Generates an INSERT statement for the given column-value pairs.

        :param data: Dict of column-value pairs, already stripped of generated keys.
        :return: (SQL string, parameter dict)
        """
        if not data:
            return f"INSERT INTO {self.__table__} DEFAULT VALUES", {}

        params: dict[str, Any] = {}
        columns = []
        placeholders = []
        for column, value in data.items():
            columns.append(identifier(column, "INSERT column", qualified=False))
            name = placeholder_name(column, params)
            placeholders.append(f":{name}")
            params[name] = value

        sql = f"INSERT INTO {self.__table__} ({', '.join(columns)}) VALUES ({', '.join(placeholders)})"
        return sql, params

    def update(self, values: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        if not values:
            raise ValueError("No update values provided.")

        where_clause = self._build_conditions()
        if not where_clause:
            raise ValueError("Unsafe update: missing WHERE clause.")

        params = dict(self.parameters)
        sets = []
        for column, value in values.items():
            identifier(column, "UPDATE column", qualified=False)
            name = placeholder_name(column, params)
            sets.append(f"{column} = :{name}")
            params[name] = value

        sql = f"UPDATE {self.__table__} SET {', '.join(sets)}{where_clause}"
        return sql, params

    def delete(self) -> tuple[str, dict[str, Any]]:
        where_clause = self._build_conditions()
        if not where_clause:
            raise EmptyCondition()
        return f"DELETE FROM {self.__table__}{where_clause}", dict(self.parameters)

    # --------------------------------------------------------------------------
    # Debugging
    # --------------------------------------------------------------------------

    @staticmethod
    def substitute_params(sql: str, params: dict[str, Any]) -> str:
        def render(match):
            name = match.group(1)
            if name not in params:
                return match.group(0)
            param = params[name]
            if param is None:
                return "NULL"
            if isinstance(param, (datetime, date)):
                return f"'{param.isoformat()}'"
            if isinstance(param, str):
                escaped = param.replace("'", "''")
                return f"'{escaped}'"
            return str(param)

        return PLACEHOLDER.sub(render, sql)

    def to_raw_sql(self) -> str:
        sql, params = self.get()
        return self.substitute_params(sql, params)

    def __repr__(self) -> str:
        return f"QueryBuilder({self.to_sql()!r})"
