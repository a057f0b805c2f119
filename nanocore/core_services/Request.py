from typing import Any

from flask import request as flask_request


class Request:
    """
    What a route handler sees of the incoming request.

    ``params`` holds the path parameters captured by ``@name`` segments (and
    ``wildcard`` for a trailing ``@*``).
    """

    def __init__(self, request=None, params: dict[str, Any] | None = None):
        self.request = request if request is not None else flask_request
        self.params = dict(params or {})

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def segments(self) -> list[str]:
        return [segment for segment in self.path.strip("/").split("/") if segment]

    @property
    def body(self) -> Any:
        """Decoded JSON, else the raw text, else None."""
        if self.request.is_json:
            return self.request.get_json(silent=True)
        data = self.request.get_data(as_text=True)
        return data or None

    def __get_json(self) -> dict:
        payload = self.body if self.request.is_json else None
        return payload if isinstance(payload, dict) else {}

    def all(self) -> dict[str, Any]:
        data = {}
        data.update(self.__get_json())
        data.update(self.request.form.to_dict())
        data.update(self.query())
        data.update(self.params)
        return data

    def input(self, key, default=None, cast: type = None) -> Any:
        value = self.all().get(key)

        if value is None:
            return default

        if cast:
            try:
                return cast(value)
            except (ValueError, TypeError):
                return default

        return value

    def query(self, key=None, default=None) -> Any:
        if key is None:
            return self.request.args.to_dict()
        return self.request.args.get(key, default)

    def integer(self, key, default=None) -> int:
        return self.input(key, default, cast=int)

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path} params={self.params!r}>"
