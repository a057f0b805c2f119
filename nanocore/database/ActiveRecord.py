import logging
from typing import Any, Iterable, Mapping, Optional, Self

from nanocore.core_services.Database import Database, as_database
from nanocore.database.Exceptions import EmptyCondition, MissingPrimaryKey
from nanocore.database.Joins import WILDCARD, JoinQuery
from nanocore.database.QueryBuilder import QueryBuilder
from nanocore.database.active_record.utils.ModelCollection import ModelCollection
from nanocore.database.active_record.utils.Schema import DEFAULT_PROBES, Schema, SchemaProbe, introspect
from nanocore.database.active_record.utils.Serialization import ActiveRecordUtilitiesSerialization

logger = logging.getLogger("nanocore.orm")

# Writes to names outside the table's columns are dropped without an error.
UNKNOWN_FIELD_POLICY = "ignore"


class ActiveRecord(ActiveRecordUtilitiesSerialization):
    """
    A row of an existing table whose columns are discovered at runtime.

        user = ActiveRecord(db, "users")
        user.name = "Alice"
        user.save()                  # INSERT, id filled in
        user.find_by_id(user.id)     # re-hydrates this instance

    ``db`` may be a ``Database`` or a raw ``sqlite3`` / MySQL connection.
    Pass ``schema=`` to reuse an already introspected ``Schema`` and skip the
    probe queries.
    """

    # ---------------------------------------------------------------------------
    # Construction
    # ---------------------------------------------------------------------------

    def __init__(self, db, table: str, primary_key: str = "id",
                 schema: Optional[Schema] = None,
                 probes: Iterable[SchemaProbe] = DEFAULT_PROBES):
        self.db: Database = as_database(db)
        self.__table__ = table
        self.__primary_key__ = primary_key
        self.__schema__ = schema if schema is not None else introspect(self.db, table, tuple(probes))
        self.__data__: dict[str, Any] = {}
        self.__persisted__ = False
        self.__joins__ = JoinQuery(self)

    def new(self) -> Self:
        """A fresh record bound to the same table and schema, without re-probing."""
        return self.__class__(self.db, self.__table__, self.__primary_key__, schema=self.__schema__)

    def __setattr__(self, key, value):
        # "db" is only bound once, in __init__; afterwards every public name is a field write.
        if key.startswith("_") or (key == "db" and "db" not in self.__dict__):
            object.__setattr__(self, key, value)
        else:
            self.set(key, value)

    def __getattr__(self, key):
        # Only reached when normal lookup fails, i.e. for column names.
        if key.startswith("_"):
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {key!r}")
        return self.__data__.get(key)

    def __delattr__(self, key):
        if key.startswith("_"):
            object.__delattr__(self, key)
        else:
            self.__data__.pop(key, None)

    def __contains__(self, key) -> bool:
        return key in self.__data__

    def __repr__(self) -> str:
        state = "persisted" if self.__persisted__ else "new"
        return f"<{type(self).__name__} {self.__table__} {state} {self.__data__!r}>"

    # --------------------------------------------------------------------------
    # Basic Model Information
    # --------------------------------------------------------------------------

    def get_table(self) -> str:
        return self.__table__

    def get_primary_key_column(self) -> str:
        return self.__primary_key__

    def get_schema(self) -> Schema:
        return self.__schema__

    @property
    def known_fields(self) -> tuple[str, ...]:
        return self.__schema__.fields

    def get_id(self) -> Any:
        return self.__data__.get(self.__primary_key__)

    def is_persisted(self) -> bool:
        return self.__persisted__

    def is_new(self) -> bool:
        return not self.__persisted__

    # --------------------------------------------------------------------------
    # Field Store
    # --------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.__data__.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if self.__schema__.allows(key, self.__primary_key__):
            self.__data__[key] = value
        else:
            logger.debug("Ignoring unknown field %s on %s", key, self.__table__)

    def fill(self, data: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Self:
        for key, value in {**(data or {}), **kwargs}.items():
            self.set(key, value)
        return self

    def to_map(self) -> dict[str, Any]:
        return dict(self.__data__)

    def hydrate(self, row: Mapping[str, Any]) -> Self:
        """Take a result row verbatim, extra columns included, and mark the record persisted."""
        self.__data__ = dict(row)
        self.__persisted__ = True
        return self

    def clear(self) -> Self:
        self.__data__ = {}
        self.__persisted__ = False
        self.__joins__ = JoinQuery(self)
        return self

    # --------------------------------------------------------------------------
    # Query Creation
    # --------------------------------------------------------------------------

    def select_columns(self) -> list[str]:
        columns = [f"{self.__table__}.{name}" for name in self.__schema__.fields]
        if self.__primary_key__ not in self.__schema__:
            columns.append(f"{self.__table__}.{self.__primary_key__}")
        return columns

    def new_query(self) -> QueryBuilder:
        return QueryBuilder(self.__table__, self.select_columns())

    def _hydrate_results(self, rows: list[dict[str, Any]]) -> ModelCollection:
        return ModelCollection([self.new().hydrate(row) for row in rows])

    # --------------------------------------------------------------------------
    # Finders
    # --------------------------------------------------------------------------

    def find_by_id(self, id_: Any) -> Optional[Self]:
        """
        Load the row with this primary key into *this* record.
        Returns None, leaving the record untouched, when no row matches.
        """
        query = self.new_query().where(self.__primary_key__, id_).limit(1)
        rows = self.db.query(*query.get())
        if not rows:
            return None
        return self.hydrate(rows[0])

    def find_by(self, field: str, value: Any, limit: Optional[int] = None) -> ModelCollection:
        query = self.new_query().where(field, value).limit(limit)
        return self._hydrate_results(self.db.query(*query.get()))

    def find_all(self, conditions: Optional[Mapping[str, Any]] = None,
                 order_by: str = "", limit: Optional[int] = None) -> ModelCollection:
        """
        Equality-filtered listing. Joins are ignored here: joined rows are
        not records of this table, use ``fetch_with_joins`` for those.
        """
        query = (
            self.new_query()
            .where(dict(conditions or {}))
            .order_by(order_by)
            .limit(limit)
        )
        return self._hydrate_results(self.db.query(*query.get()))

    # --------------------------------------------------------------------------
    # Joins
    # --------------------------------------------------------------------------

    def add_join(self, table: str, local_key: str, foreign_key: str,
                 join_type: str = "INNER", fields=(WILDCARD,)) -> Self:
        self.__joins__ = self.__joins__.join(table, local_key, foreign_key, join_type, fields)
        return self

    def joins(self) -> JoinQuery:
        return self.__joins__

    def fetch_with_joins(self, conditions: Optional[Mapping[str, Any]] = None) -> list[dict[str, Any]]:
        return self.__joins__.fetch(dict(conditions or {}))

    # --------------------------------------------------------------------------
    # Persistence - Save
    # --------------------------------------------------------------------------

    def save(self) -> bool:
        """INSERT when new, UPDATE when persisted. Storage is never consulted first."""
        if self.__persisted__:
            return self.update()
        return self.insert()

    def insert(self) -> bool:
        pk = self.__primary_key__
        data = {key: value for key, value in self.__data__.items() if key != pk}
        sql, params = QueryBuilder(self.__table__).insert(data)
        cursor = self.db.execute(sql, params)

        if self.__data__.get(pk) is None and cursor.lastrowid is not None:
            self.__data__[pk] = cursor.lastrowid
        self.__persisted__ = True
        return True

    def update(self, values: Optional[Mapping[str, Any]] = None) -> bool:
        if values:
            self.fill(values)

        pk = self.__primary_key__
        pk_value = self.__data__.get(pk)
        if pk_value is None:
            raise MissingPrimaryKey("update", pk)

        data = {key: value for key, value in self.__data__.items() if key != pk}
        if not data:
            return True

        sql, params = QueryBuilder(self.__table__).where(pk, pk_value).update(data)
        self.db.execute(sql, params)
        return True

    # --------------------------------------------------------------------------
    # Persistence - Delete
    # --------------------------------------------------------------------------

    def delete(self) -> bool:
        pk = self.__primary_key__
        pk_value = self.__data__.get(pk)
        if pk_value is None:
            raise MissingPrimaryKey("delete", pk)

        sql, params = QueryBuilder(self.__table__).where(pk, pk_value).delete()
        self.db.execute(sql, params)
        self.__data__ = {}
        self.__persisted__ = False
        return True

    def delete_where(self, conditions: Mapping[str, Any]) -> int:
        """Bulk delete by equality conditions; returns the affected row count."""
        if not conditions:
            raise EmptyCondition()

        sql, params = QueryBuilder(self.__table__).where(dict(conditions)).delete()
        return self.db.execute(sql, params).rowcount
