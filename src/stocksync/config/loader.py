"""Legacy command-line loader configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .env import env_str, require_env_vars

DEFAULT_SHEET_NAME = "Import"
DEFAULT_FILE_PREFIX = "ImportCI"


@dataclass(frozen=True, slots=True)
class LoaderCredentials:
    """Credentials handed to the loader for one import run."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"LoaderCredentials(username={self.username!r}, password='***')"


@dataclass(frozen=True, slots=True)
class LoaderConfig:
    """Holds the loader executable location and target server."""

    executable: Path
    server_url: str
    sheet_name: str = DEFAULT_SHEET_NAME
    file_prefix: str = DEFAULT_FILE_PREFIX


def get_loader_config() -> LoaderConfig:
    values = require_env_vars(("STOCKSYNC_LOADER_PATH", "STOCKSYNC_LOADER_URL"))
    return LoaderConfig(
        executable=Path(values["STOCKSYNC_LOADER_PATH"]).expanduser(),
        server_url=values["STOCKSYNC_LOADER_URL"],
        sheet_name=env_str("STOCKSYNC_LOADER_SHEET", DEFAULT_SHEET_NAME),
    )


def get_loader_credentials() -> LoaderCredentials:
    values = require_env_vars(("STOCKSYNC_LOADER_USER", "STOCKSYNC_LOADER_PASSWORD"))
    return LoaderCredentials(
        username=values["STOCKSYNC_LOADER_USER"],
        password=values["STOCKSYNC_LOADER_PASSWORD"],
    )
