"""
Join descriptors and the immutable join chain attached to a record.

Each call to ``JoinQuery.join`` returns a new chain, so a record can hand out
its current chain without later ``add_join`` calls leaking into it.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Iterator

from nanocore.database.Exceptions import UnsafeClause
from nanocore.database.QueryBuilder import QueryBuilder, identifier

JOIN_TYPES = ("INNER", "LEFT", "RIGHT")
WILDCARD = "*"


@dataclass(frozen=True)
class JoinDescriptor:
    table: str
    local_key: str
    foreign_key: str
    join_type: str = "INNER"
    fields: tuple[str, ...] = (WILDCARD,)
    alias: str = "j0"

    def __post_init__(self):
        join_type = str(self.join_type).strip().upper()
        if join_type not in JOIN_TYPES:
            raise UnsafeClause("JOIN type", self.join_type)
        object.__setattr__(self, "join_type", join_type)

        identifier(self.table, "JOIN table")
        identifier(self.local_key, "JOIN local key", qualified=False)
        identifier(self.foreign_key, "JOIN foreign key", qualified=False)
        identifier(self.alias, "JOIN alias", qualified=False)

        fields = self.fields
        if isinstance(fields, str):
            fields = (fields,)
        fields = tuple(fields) or (WILDCARD,)
        for name in fields:
            if name != WILDCARD:
                identifier(name, "JOIN field", qualified=False)
        object.__setattr__(self, "fields", fields)

    def select_columns(self) -> list[str]:
        columns = []
        for name in self.fields:
            if name == WILDCARD:
                columns.append(f"{self.alias}.*")
            else:
                columns.append(f"{self.alias}.{name} AS {self.alias}_{name}")
        return columns

    def clause(self, table: str) -> str:
        return (
            f"{self.join_type} JOIN {self.table} AS {self.alias} "
            f"ON {table}.{self.local_key} = {self.alias}.{self.foreign_key}"
        )


@dataclass(frozen=True)
class JoinQuery:
    record: Any = field(repr=False, compare=False)
    descriptors: tuple[JoinDescriptor, ...] = ()

    def join(self, table: str, local_key: str, foreign_key: str,
             join_type: str = "INNER", fields=(WILDCARD,)) -> "JoinQuery":
        descriptor = JoinDescriptor(
            table=table,
            local_key=local_key,
            foreign_key=foreign_key,
            join_type=join_type,
            fields=fields,
            alias=f"j{len(self.descriptors)}",
        )
        return replace(self, descriptors=self.descriptors + (descriptor,))

    def to_query(self, conditions: dict[str, Any] | None = None) -> QueryBuilder:
        query = self.record.new_query()
        for descriptor in self.descriptors:
            query.join(descriptor)

        table = self.record.get_table()
        for column, value in (conditions or {}).items():
            # Both sides of a join usually share column names like "id" or "status".
            if self.descriptors and isinstance(column, str) and "." not in column:
                column = f"{table}.{column}"
            query.where(column, value)
        return query

    def fetch(self, conditions: dict[str, Any] | None = None) -> list[dict]:
        sql, params = self.to_query(conditions).get()
        return self.record.db.query(sql, params)

    def __len__(self) -> int:
        return len(self.descriptors)

    def __iter__(self) -> Iterator[JoinDescriptor]:
        return iter(self.descriptors)

    def __bool__(self) -> bool:
        return bool(self.descriptors)
