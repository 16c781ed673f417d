"""Configuration management with XDG paths, atomic writes, and env overrides.

This module handles all persistent configuration for apiflight:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.apiflight/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Settings** -- A single :class:`~apiflight.models.Settings` JSON file,
  managed via :func:`load_settings` and :func:`save_settings`.
* **Environment overrides** -- ``APIFLIGHT_BASE_URL``,
  ``APIFLIGHT_TIMEOUT`` and ``APIFLIGHT_CACHE_DIR`` take precedence over
  the file.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or interactive prompts.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`).
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Optional

from apiflight.exceptions import ConfigError
from apiflight.models import Settings

_APP_NAME = "apiflight"
_CONFIG_FILENAME = "config.json"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/apiflight/`` (default ``~/.config/apiflight/``).
    On macOS/Windows: ``~/.apiflight/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the response cache and multipart temp files. Its contents can be
    deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/apiflight/`` (default ``~/.cache/apiflight/``).
    On macOS/Windows: ``~/.apiflight/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary."""
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed.
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
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings ---


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from disk and apply environment overrides.

    Precedence (high to low):
        1. Environment variables (``APIFLIGHT_BASE_URL``,
           ``APIFLIGHT_TIMEOUT``, ``APIFLIGHT_CACHE_DIR``)
        2. The settings file (``~/.config/apiflight/config.json``)
        3. Defaults

    Args:
        path: Explicit settings file; defaults to :func:`settings_path`.

    Returns:
        The resolved :class:`~apiflight.models.Settings`.

    Raises:
        ConfigError: If the file exists but contains invalid JSON, fails
            validation, or an environment override is malformed.
    """
    path = path or settings_path()
    settings = Settings()
    if path.is_file():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            settings = Settings.model_validate(data)
        except (json.JSONDecodeError, ValueError) as exc:
            raise ConfigError(f"Invalid settings at {path}: {exc}") from exc

    return _apply_env_overrides(settings)


def _apply_env_overrides(settings: Settings) -> Settings:
    env_base_url = os.environ.get("APIFLIGHT_BASE_URL")
    if env_base_url:
        settings.base_url = env_base_url

    env_timeout = os.environ.get("APIFLIGHT_TIMEOUT")
    if env_timeout:
        try:
            settings.request.timeout = float(env_timeout)
        except ValueError as exc:
            raise ConfigError(
                f"APIFLIGHT_TIMEOUT must be a number of seconds, got {env_timeout!r}"
            ) from exc

    env_cache_dir = os.environ.get("APIFLIGHT_CACHE_DIR")
    if env_cache_dir:
        settings.cache.directory = env_cache_dir

    return settings


def save_settings(settings: Settings, path: Optional[Path] = None) -> None:
    """Persist settings atomically to disk."""
    data = settings.model_dump(mode="json", exclude_none=True)
    _atomic_write(path or settings_path(), json.dumps(data, indent=2) + "\n")


def resolve_cache_dir(settings: Settings) -> Path:
    """Return the response cache directory for *settings*, creating it if necessary."""
    if settings.cache.directory:
        path = Path(settings.cache.directory).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        return path
    return get_cache_dir()


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    raise ConfigError(f"Unknown credential source format: {source}")
