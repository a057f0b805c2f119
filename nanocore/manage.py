import argparse
import importlib
import json
import sys
from typing import List, Optional

from nanocore.NanoCore import NanoCore
from nanocore.core_services.Config import Config
from nanocore.core_services.Database import Database
from nanocore.database.Exceptions import NanoCoreError
from nanocore.database.active_record.utils.Schema import introspect


def parse_value(raw: str):
    """Values that parse as JSON are stored as such, anything else as a string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def load_app(target: str) -> NanoCore:
    """Resolve ``package.module:attribute`` to a NanoCore instance."""
    module_name, _, attribute = target.partition(":")
    module = importlib.import_module(module_name)
    app = getattr(module, attribute or "core")
    if callable(app) and not isinstance(app, NanoCore):
        app = app()
    if not isinstance(app, NanoCore):
        raise TypeError(f"{target} is not a NanoCore application")
    return app


def describe(args) -> int:
    if args.dsn:
        db = Database.from_dsn(args.dsn)
    else:
        db = NanoCore(args.config).database()
    try:
        schema = introspect(db, args.table)
    finally:
        db.close()
    for field in schema.fields:
        print(field)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="nanocore", description="NanoCore management tool")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Describe command
    describe_parser = subparsers.add_parser("describe", help="List the columns of a table")
    describe_parser.add_argument("table", help="Table name")
    describe_parser.add_argument("--dsn", help="Database URL, defaults to DATABASE.DSN or DATABASE_URL")
    describe_parser.add_argument("--config", help="Path to the JSON config file")

    # Config commands
    get_parser = subparsers.add_parser("config:get", help="Print a config value")
    get_parser.add_argument("key", help="Dotted key path, e.g. DATABASE.DSN")
    get_parser.add_argument("--config", help="Path to the JSON config file")

    set_parser = subparsers.add_parser("config:set", help="Store a config value")
    set_parser.add_argument("key", help="Dotted key path, e.g. DATABASE.DSN")
    set_parser.add_argument("value", help="Value, parsed as JSON when possible")
    set_parser.add_argument("--config", help="Path to the JSON config file")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the development server")
    serve_parser.add_argument("app", nargs="?", help="Application as module:attribute")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=5000)
    serve_parser.add_argument("--debug", action="store_true")
    serve_parser.add_argument("--config", help="Path to the JSON config file")

    args = parser.parse_args(argv)

    try:
        if args.command == "describe":
            return describe(args)

        elif args.command == "config:get":
            config = Config(args.config)
            print(json.dumps(config.get(args.key), indent=4, ensure_ascii=False))
            return 0

        elif args.command == "config:set":
            config = Config(args.config)
            config.set(args.key, parse_value(args.value))
            return 0

        elif args.command == "serve":
            core = load_app(args.app) if args.app else NanoCore(args.config)
            core.run(host=args.host, port=args.port, debug=args.debug)
            return 0

    except (NanoCoreError, RuntimeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
