from nanocore.NanoCore import NanoCore, normalize_route
from nanocore.core_services.Config import Config
from nanocore.core_services.Database import Database, as_database
from nanocore.core_services.MySqlDatabase import MySqlDatabase
from nanocore.core_services.Request import Request
from nanocore.core_services.Sqlite3Database import Sqlite3Database
from nanocore.database.ActiveRecord import ActiveRecord
from nanocore.database.Exceptions import (
    EmptyCondition,
    MissingPrimaryKey,
    NanoCoreError,
    SchemaUnavailable,
    UnsafeClause,
)
from nanocore.database.Joins import JoinDescriptor, JoinQuery
from nanocore.database.QueryBuilder import QueryBuilder
from nanocore.database.active_record.Logging import query_logging
from nanocore.database.active_record.utils.ModelCollection import ModelCollection
from nanocore.database.active_record.utils.Schema import Schema, introspect

__version__ = "0.1.0"
