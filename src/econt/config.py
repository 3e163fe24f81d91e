"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for econt:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.econt/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Config file** -- a single :class:`~econt.models.ClientConfig` JSON file
  (``config.json``) holding credentials, environment, request and cache
  settings.
* **Precedence resolution** -- :func:`resolve_config` merges explicit
  arguments, ``ECONT_*`` environment variables, and the config file into
  the effective configuration.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars or files when given as ``env:``/``file:`` descriptors.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from econt.exceptions import ConfigError
from econt.models import ClientConfig

_APP_NAME = "econt"
_CONFIG_FILENAME = "config.json"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on platforms that follow the XDG base directory layout (Linux, BSD)."""
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

    On Linux/BSD: ``$XDG_CONFIG_HOME/econt/`` (default ``~/.config/econt/``).
    On macOS/Windows: ``~/.econt/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the nomenclature store.  Cached data can be safely deleted at any
    time; it is re-fetched on the next lookup.

    On Linux/BSD: ``$XDG_CACHE_HOME/econt/`` (default ``~/.cache/econt/``).
    On macOS/Windows: ``~/.econt/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/econt/`` (default ``~/.local/share/econt/``).
    On macOS/Windows: ``~/.econt/logs/``.
    """
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
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
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
        # The file may hold the API password.
        os.chmod(tmp_path, 0o600)
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


# --- Config file ---


def config_path() -> Path:
    """Path to the default config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config(path: Optional[str | Path] = None) -> ClientConfig:
    """Load a :class:`~econt.models.ClientConfig` from disk.

    Args:
        path: Explicit config file.  Defaults to :func:`config_path`.

    Returns:
        The deserialised config.  When the default file does not exist a
        default instance is returned.

    Raises:
        ConfigError: If an explicit *path* does not exist, or the file
            contains invalid JSON or fails validation.
    """
    target = Path(path).expanduser() if path is not None else config_path()
    if not target.is_file():
        if path is not None:
            raise ConfigError(f"Config file not found: {target}")
        return ClientConfig()
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
        return ClientConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {target}: {exc}") from exc


def save_config(config: ClientConfig, path: Optional[str | Path] = None) -> Path:
    """Persist *config* atomically and return the path written."""
    target = Path(path).expanduser() if path is not None else config_path()
    data = config.model_dump(mode="json")
    _atomic_write(target, json.dumps(data, indent=2) + "\n")
    return target


# --- Precedence resolution ---


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigError(f"Environment variable {name} must be a boolean, got '{value}'")


def _env_overrides() -> dict[str, Any]:
    """Collect ``ECONT_*`` environment variables as a nested override dict."""
    overrides: dict[str, Any] = {}
    cache: dict[str, Any] = {}

    for var, field in (
        ("ECONT_USERNAME", "username"),
        ("ECONT_PASSWORD", "password"),
        ("ECONT_ENVIRONMENT", "environment"),
        ("ECONT_BASE_URL", "base_url"),
    ):
        value = os.environ.get(var)
        if value:
            overrides[field] = value

    enabled = os.environ.get("ECONT_CACHE_ENABLED")
    if enabled is not None:
        cache["enabled"] = _parse_bool("ECONT_CACHE_ENABLED", enabled)
    ttl = os.environ.get("ECONT_CACHE_TTL_MS")
    if ttl:
        try:
            cache["ttl_ms"] = int(ttl)
        except ValueError:
            raise ConfigError(
                f"Environment variable ECONT_CACHE_TTL_MS must be an integer, got '{ttl}'"
            ) from None
    cache_dir = os.environ.get("ECONT_CACHE_DIR")
    if cache_dir:
        cache["directory"] = cache_dir

    if cache:
        overrides["cache"] = cache
    return overrides


def resolve_config(
    path: Optional[str | Path] = None,
    **overrides: Any,
) -> ClientConfig:
    """Resolve the effective configuration with full precedence chain.

    Precedence (high to low):
        1. Explicit keyword arguments (``username=``, ``environment=``,
           ``cache={...}``)
        2. Environment variables (``ECONT_USERNAME``, ``ECONT_PASSWORD``,
           ``ECONT_ENVIRONMENT``, ``ECONT_BASE_URL``, ``ECONT_CACHE_ENABLED``,
           ``ECONT_CACHE_TTL_MS``, ``ECONT_CACHE_DIR``)
        3. Config file (*path* or ``~/.config/econt/config.json``)
        4. Defaults

    Credential fields given as ``env:``/``file:`` descriptors are resolved
    last, after all layers have been merged.

    Raises:
        ConfigError: On unreadable files, invalid env values, failed
            validation, or unresolvable credential sources.
    """
    merged = load_config(path).model_dump()

    for layer in (_env_overrides(), {k: v for k, v in overrides.items() if v is not None}):
        for key, value in layer.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value

    try:
        config = ClientConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

    if config.username:
        config.username = resolve_credential(config.username)
    if config.password:
        config.password = resolve_credential(config.password)
    return config


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - anything else is returned unchanged as a literal value

    Raises:
        ConfigError: If the variable is unset or the file is unreadable.
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

    return source
