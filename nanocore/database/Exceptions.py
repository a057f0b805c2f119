class NanoCoreError(Exception):
    """Base class for every error raised by the mapper."""
    status: int = 500


class SchemaUnavailable(NanoCoreError):
    """Raised when no schema probe could list the columns of a table."""
    status = 500

    def __init__(self, table: str, reason: str = None):
        self.table = table
        self.reason = reason
        message = f"Unable to load schema for table: {table}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class MissingPrimaryKey(NanoCoreError):
    status = 400

    def __init__(self, action: str = "update", primary_key: str = "id"):
        self.action = action
        self.primary_key = primary_key
        super().__init__(f"Cannot {action} record without primary key '{primary_key}'")


class EmptyCondition(NanoCoreError):
    """Bulk deletes must name at least one condition."""
    status = 400

    def __init__(self, message="Delete conditions cannot be empty"):
        super().__init__(message)


class UnsafeClause(NanoCoreError):
    """Raised when an identifier, ORDER BY or LIMIT fragment cannot be rendered safely."""
    status = 400

    def __init__(self, clause: str, value):
        self.clause = clause
        self.value = value
        super().__init__(f"Refusing unsafe {clause}: {value!r}")
