"""Runtime configuration for drop.

Settings come from the environment (a ``.env`` file is loaded by the CLI
first) and can be overridden by command-line options.

Environment variables:
    DROP_DATABASE       explicit database file path
    XDG_DATA_HOME       directory searched for ``drop.<ext>``
    HOME                searched for ``.drop.<ext>`` when XDG_DATA_HOME is unset
    DROP_LOG_LEVEL      DEBUG, INFO, WARNING (default), ERROR, CRITICAL
    DROP_LOG_FORMAT     plain (default) or json
    DROP_LOG_FILE       optional rotating log file
    DROP_LMDB_MAP_SIZE  maximum LMDB database size in bytes
    DROP_XCLIP          xclip executable used for selection transfers
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .logging import LogConfig, LogFormat, LogLevel
from .storage.registry import EXTENSION_MAP
from .transfer import DEFAULT_XCLIP

DEFAULT_FILENAME = "drop.dbm"
XDG_PREFIX = "drop."
HOME_PREFIX = ".drop."
DEFAULT_LMDB_MAP_SIZE = 10 * 1024 * 1024  # 10MB


class ConfigurationError(Exception):
    """Configuration is invalid or the database location cannot be determined."""
    pass


def _path_or_none(value: str | None) -> Path | None:
    return Path(value).expanduser() if value else None


@dataclass
class DropConfig:
    """Configuration for one drop invocation.

    Example:
        >>> config = DropConfig(database=Path("/tmp/notes.mdb"))
        >>> config.resolve_database_path()
        PosixPath('/tmp/notes.mdb')
    """

    database: Path | None = None
    data_home: Path | None = None
    home: Path | None = None

    log_level: LogLevel = LogLevel.WARNING
    log_format: LogFormat = LogFormat.PLAIN
    log_file: Path | None = None

    lmdb_map_size: int = DEFAULT_LMDB_MAP_SIZE
    xclip_command: str = DEFAULT_XCLIP

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> DropConfig:
        """Build a configuration from environment variables.

        Raises:
            ConfigurationError: A variable holds an invalid value.
        """
        env = os.environ if environ is None else environ

        try:
            log_level = LogLevel(env.get("DROP_LOG_LEVEL", LogLevel.WARNING.value).upper())
        except ValueError as exc:
            raise ConfigurationError(f"Invalid DROP_LOG_LEVEL: {env['DROP_LOG_LEVEL']!r}") from exc

        try:
            log_format = LogFormat(env.get("DROP_LOG_FORMAT", LogFormat.PLAIN.value).lower())
        except ValueError as exc:
            raise ConfigurationError(f"Invalid DROP_LOG_FORMAT: {env['DROP_LOG_FORMAT']!r}") from exc

        map_size = env.get("DROP_LMDB_MAP_SIZE")
        try:
            lmdb_map_size = int(map_size) if map_size else DEFAULT_LMDB_MAP_SIZE
        except ValueError as exc:
            raise ConfigurationError(f"Invalid DROP_LMDB_MAP_SIZE: {map_size!r}") from exc
        if lmdb_map_size <= 0:
            raise ConfigurationError(f"Invalid DROP_LMDB_MAP_SIZE: {map_size!r}")

        return cls(
            database=_path_or_none(env.get("DROP_DATABASE")),
            data_home=_path_or_none(env.get("XDG_DATA_HOME")),
            home=_path_or_none(env.get("HOME")),
            log_level=log_level,
            log_format=log_format,
            log_file=_path_or_none(env.get("DROP_LOG_FILE")),
            lmdb_map_size=lmdb_map_size,
            xclip_command=env.get("DROP_XCLIP") or DEFAULT_XCLIP,
        )

    def search_location(self) -> tuple[Path, str]:
        """Return the directory to search and the file name prefix to look for."""
        if self.data_home is not None:
            return self.data_home, XDG_PREFIX
        if self.home is not None:
            return self.home, HOME_PREFIX
        raise ConfigurationError("Neither XDG_DATA_HOME nor HOME is set")

    def resolve_database_path(self) -> Path:
        """Pick the database file.

        1. The explicit ``database`` setting.
        2. The first (sorted) ``<prefix><ext>`` entry in the search directory
           whose extension names a known backend.
        3. ``drop.dbm`` in the search directory.

        Raises:
            ConfigurationError: The search directory cannot be read.
        """
        if self.database is not None:
            return self.database

        directory, prefix = self.search_location()
        try:
            names = sorted(entry.name for entry in directory.iterdir())
        except OSError as exc:
            raise ConfigurationError(
                f'Could not open directory: "{directory}": {exc.strerror or exc}'
            ) from exc

        for name in names:
            if name.startswith(prefix) and name[len(prefix):] in EXTENSION_MAP:
                return directory / name
        return directory / DEFAULT_FILENAME

    def backend_options(self, backend: str) -> dict[str, Any]:
        """Constructor options for a backend's adapter."""
        if backend == "lmdb":
            return {"map_size": self.lmdb_map_size}
        return {}

    def log_config(self) -> LogConfig:
        return LogConfig(level=self.log_level, format=self.log_format, log_file=self.log_file)
