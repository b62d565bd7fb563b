"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for oasmodel:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.oasmodel/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`. The engine uses the cache
  dir for a persistent parse cache and the data dir for stored schema
  versions when no explicit location is configured.
* **Engine config** -- A single :class:`~oasmodel.models.EngineConfig` JSON
  file storing cache, remote-fetch, validation and versioning settings.
* **Precedence resolution** -- :func:`load_engine_config` merges explicit
  overrides, ``OASMODEL_*`` environment variables, the project-local
  ``./oasmodel.json`` and the user config file into the effective config.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`); the file-backed version store reuses it for its
active-version pointer.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from oasmodel.exceptions import ConfigError
from oasmodel.models import EngineConfig

_APP_NAME = "oasmodel"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "oasmodel.json"

# Environment variable -> (section, key) in the EngineConfig dict.
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "OASMODEL_CACHE_ENABLED": ("cache", "enabled"),
    "OASMODEL_CACHE_TTL": ("cache", "ttl_seconds"),
    "OASMODEL_CACHE_DIR": ("cache", "directory"),
    "OASMODEL_CACHE_PERSISTENT": ("cache", "persistent"),
    "OASMODEL_REMOTE_TIMEOUT": ("remote", "timeout"),
    "OASMODEL_MAX_FILE_SIZE": ("remote", "max_file_size"),
    "OASMODEL_STRICTNESS": ("validation", "strictness"),
    "OASMODEL_VERSION_STORAGE": ("versioning", "storage_path"),
    "OASMODEL_VERSIONING_ENABLED": ("versioning", "enabled"),
    "OASMODEL_COMPARE_STRATEGY": ("versioning", "compare_strategy"),
    "OASMODEL_MIGRATION_STRATEGY": ("versioning", "migration_strategy"),
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/oasmodel/`` (default ``~/.config/oasmodel/``).
    On macOS/Windows: ``~/.oasmodel/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the directory of the persistent parse cache when none is configured.

    On Linux/BSD: ``$XDG_CACHE_HOME/oasmodel/`` (default ``~/.cache/oasmodel/``).
    On macOS/Windows: ``~/.oasmodel/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory; stored schema versions default to ``versions/`` here.

    On Linux/BSD: ``$XDG_DATA_HOME/oasmodel/`` (default ``~/.local/share/oasmodel/``).
    On macOS/Windows: ``~/.oasmodel/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On any failure the temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config files ---


def _user_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def _read_json_file(path: Path, label: str) -> Optional[dict[str, Any]]:
    """Read a JSON object from *path*, or ``None`` when the file is absent."""
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid {label} config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} config at {path}: expected a JSON object")
    return data


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./oasmodel.json``.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON.
    """
    return _read_json_file(Path.cwd() / _PROJECT_CONFIG_FILENAME, "project")


def _env_overrides() -> dict[str, Any]:
    """Collect ``OASMODEL_*`` environment variables into a nested config dict."""
    result: dict[str, Any] = {}
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            result.setdefault(section, {})[key] = value
    return result


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Return *base* updated recursively with *overlay* (neither is mutated)."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_engine_config(
    path: str | Path | None = None,
    overrides: Optional[dict[str, Any]] = None,
) -> EngineConfig:
    """Resolve the engine config with full precedence chain.

    Precedence (high to low):
        1. ``overrides`` (nested dict, e.g. ``{"cache": {"enabled": False}}``)
        2. Environment variables (``OASMODEL_CACHE_TTL``, ``OASMODEL_STRICTNESS``, ...)
        3. Project config (``./oasmodel.json``)
        4. User config (*path*, default ``~/.config/oasmodel/config.json``)
        5. Defaults

    Raises:
        ConfigError: If a config file is invalid or the merged values fail
            Pydantic validation.
    """
    user_path = Path(path) if path is not None else _user_config_path()
    merged: dict[str, Any] = {}
    for layer in (
        _read_json_file(user_path, "user"),
        load_project_config(),
        _env_overrides(),
        overrides,
    ):
        if layer:
            merged = _deep_merge(merged, layer)

    try:
        return EngineConfig.model_validate(merged)
    except ValueError as exc:
        raise ConfigError(f"Invalid oasmodel configuration: {exc}") from exc


def save_engine_config(config: EngineConfig, path: str | Path | None = None) -> Path:
    """Persist *config* atomically and return the path written."""
    target = Path(path) if path is not None else _user_config_path()
    data = config.model_dump(mode="json")
    _atomic_write(target, json.dumps(data, indent=2) + "\n")
    return target
