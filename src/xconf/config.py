"""Application configuration defaults."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

XCONF_NAMESPACE = "http://exist-db.org/collection-config/1.0"
CONFIG_COLLECTION = "/db/system/config"
COLLECTION_CONFIG_FILENAME = "collection.xconf"


def _get_default_db_path() -> Path:
    """Get the default resource database path based on execution context."""
    user_db = Path.home() / ".local" / "share" / "xconf" / "resources.db"

    if getattr(sys, "frozen", False):
        return user_db

    # When running from source, prefer local data/ if it exists
    local_db = Path("data/resources.db")
    if local_db.exists():
        return local_db

    return user_db


def config_path_for(collection: str) -> str:
    """Return the configuration collection that holds ``collection``'s xconf."""
    name = "/" + collection.strip("/") if collection.strip("/") else ""
    return CONFIG_COLLECTION + name


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    server_url: str | None = None
    username: str | None = None
    password: str | None = None
    newline: str = "\n"

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
