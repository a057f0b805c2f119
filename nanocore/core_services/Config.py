import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

DEFAULT_CONFIG_FILE = "app.json"


class Config:
    """
    JSON file store addressed with dotted key paths.

        config.set("DATABASE.DSN", "sqlite:///app.db")
        config.get("DATABASE.DSN")       # "sqlite:///app.db"
        config.get("DATABASE")           # {"DSN": "sqlite:///app.db"}

    The file is re-read on every access, so several instances pointing at
    the same file always agree. A missing file is created as ``{}``.
    """

    def __init__(self, config_file: str | os.PathLike | None = None):
        load_dotenv()
        self.config_file = Path(config_file or os.getenv("NANOCORE_CONFIG", DEFAULT_CONFIG_FILE))

    def load(self) -> dict[str, Any]:
        if not self.config_file.exists():
            self.save({})
        contents = self.config_file.read_text(encoding="utf-8")
        return json.loads(contents) if contents.strip() else {}

    def save(self, data: dict[str, Any]) -> None:
        if self.config_file.parent and not self.config_file.parent.exists():
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(data, indent=4, ensure_ascii=False), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self.load()
        for prop in key.split("."):
            if not isinstance(node, dict) or prop not in node:
                return default
            node = node[prop]
        return node

    def set(self, key: str, value: Any) -> None:
        config = self.load()
        parts = key.split(".")

        node = config
        for prop in parts[:-1]:
            if not isinstance(node.get(prop), dict):
                node[prop] = {}
            node = node[prop]
        node[parts[-1]] = value

        self.save(config)
