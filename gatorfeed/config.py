"""Reading and writing the per-user configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


@dataclass
class Config:
    """Database location and the name of the logged-in user."""

    db_url: str = ""
    current_user: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, username: str) -> None:
        """Make ``username`` the current user and save the configuration."""
        self.current_user = username
        write(self, self.path)

    def to_json(self) -> str:
        """Serialise the configuration the way it is stored on disk."""
        data = {"db_url": self.db_url}
        if self.current_user:
            data["current_user_name"] = self.current_user
        return json.dumps(data, indent=2) + "\n"


def _string_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string")
    return value


def read(path: str | Path | None = None) -> Config:
    """Load the configuration from ``path`` (the home-directory file by default)."""
    location = Path(path) if path is not None else config_file_path()
    with location.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_string_field(data, "db_url"),
        current_user=_string_field(data, "current_user_name"),
        path=location,
    )


def write(config: Config, path: str | Path | None = None) -> None:
    """Save ``config`` to ``path`` (the home-directory file by default)."""
    location = Path(path) if path is not None else config_file_path()
    location.write_text(config.to_json(), encoding="utf-8")