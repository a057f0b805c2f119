import logging
import os
from typing import Any, Callable

from flask import Flask, Response, jsonify
from flask import request as flask_request

from nanocore.core_services.Config import Config
from nanocore.core_services.Database import Database
from nanocore.core_services.ErrorHandler import ErrorHandler
from nanocore.core_services.Request import Request
from nanocore.database.ActiveRecord import ActiveRecord
from nanocore.database.QueryBuilder import IDENTIFIER
from nanocore.database.active_record.utils.ModelCollection import ModelCollection
from nanocore.database.active_record.utils.Serialization import serialize_value

logger = logging.getLogger("nanocore.http")

Handler = Callable[["NanoCore", Request], Any]


def normalize_route(path: str) -> str:
    """
    Turn a route pattern into a Flask rule.

        "users/@id/"   -> "/users/<id>"
        "/files/@*"    -> "/files/<path:wildcard>"

    Leading and trailing slashes never matter; ``@*`` is only valid last.
    """
    segments = [segment for segment in path.strip().strip("/").split("/") if segment]
    parts = []
    for position, segment in enumerate(segments):
        if segment == "@*":
            if position != len(segments) - 1:
                raise ValueError(f"Wildcard must be the last segment of route {path!r}")
            parts.append("<path:wildcard>")
        elif segment.startswith("@"):
            name = segment[1:]
            if not IDENTIFIER.match(name):
                raise ValueError(f"Invalid route parameter {segment!r} in {path!r}")
            parts.append(f"<{name}>")
        else:
            parts.append(segment)
    return "/" + "/".join(parts)


def to_response(result: Any):
    """Map a handler's return value onto something Flask can send."""
    if isinstance(result, Response):
        return result
    if isinstance(result, tuple):
        body, *rest = result
        return ("" if body is None else to_response(body), *rest)
    if result is None:
        return "", 204
    if isinstance(result, ActiveRecord):
        return jsonify(result.to_dict())
    if isinstance(result, ModelCollection):
        return jsonify(result.to_list_dict())
    if isinstance(result, (dict, list)):
        return jsonify(serialize_value(result))
    if isinstance(result, bytes):
        return Response(result, mimetype="application/octet-stream")
    return Response(str(result), mimetype="text/plain")


class NanoCore:
    """
    Minimal dispatcher: method + path pattern -> ``handler(core, request)``.

        core = NanoCore("app.json")

        @core.route("/users/@id")
        def show(core, request):
            return ActiveRecord(core.database(), "users").find_by_id(request.params["id"])
    """

    def __init__(self, config_file: str | None = None, import_name: str = "nanocore"):
        self.config = Config(config_file)
        self.storage: dict[str, Any] = {}
        self.routes: dict[tuple[str, str], Handler] = {}
        self._database: Database | None = None

        self.app = Flask(import_name)
        self.app.url_map.strict_slashes = False
        self.error_handler = ErrorHandler()
        self.error_handler.register(self.app)

    # --------------------------------------------------------------------------
    # Routing
    # --------------------------------------------------------------------------

    def add_route(self, method: str, path: str, handler: Handler) -> None:
        method = method.upper()
        rule = normalize_route(path)
        key = (method, rule)

        if key not in self.routes:
            self.app.add_url_rule(
                rule,
                endpoint=f"{method} {rule}",
                view_func=self._view(key),
                methods=[method],
            )
        # Re-registering a pattern replaces its handler.
        self.routes[key] = handler

    def route(self, path: str, methods=("GET",)):
        def decorator(handler: Handler) -> Handler:
            for method in methods:
                self.add_route(method, path, handler)
            return handler
        return decorator

    def _view(self, key: tuple[str, str]):
        def view(**params):
            return self.dispatch(self.routes[key], params)
        return view

    def dispatch(self, handler: Handler, params: dict[str, Any]):
        request = Request(flask_request, params)
        logger.debug("Dispatching %s %s to %s", request.method, request.path, getattr(handler, "__name__", handler))
        return to_response(handler(self, request))

    # --------------------------------------------------------------------------
    # Services
    # --------------------------------------------------------------------------

    def database(self) -> Database:
        """The application's database, built once from ``DATABASE.DSN`` or ``DATABASE_URL``."""
        if self._database is None:
            dsn = self.config.get("DATABASE.DSN") or os.getenv("DATABASE_URL")
            if not dsn:
                raise RuntimeError("No database configured: set DATABASE.DSN or DATABASE_URL")
            self._database = Database.from_dsn(dsn)
        return self._database

    def test_client(self):
        return self.app.test_client()

    def run(self, host: str = "127.0.0.1", port: int = 5000, debug: bool = False) -> None:
        self.app.run(host=host, port=port, debug=debug)

    def __call__(self, environ, start_response):
        return self.app(environ, start_response)
