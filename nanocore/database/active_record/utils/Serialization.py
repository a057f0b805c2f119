import base64
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any


def serialize_value(value: Any) -> Any:
    """Convert one stored value (or a nested record / collection) into JSON-safe data."""
    from nanocore.database.ActiveRecord import ActiveRecord

    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("utf-8")
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, ActiveRecord):
        return value.to_dict()
    if isinstance(value, dict):
        return {key: serialize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    return value


class ActiveRecordUtilitiesSerialization:
    def to_dict(self) -> dict[str, Any]:
        return {key: serialize_value(value) for key, value in self.__data__.items()}
