"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent state of lfm outside the response cache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.lfm/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Config file** -- A single :class:`~lfm.models.LfmConfig` JSON file
  storing the API key, defaults, throttle interval and cache settings.
* **Precedence resolution** -- :func:`resolve_config` layers environment
  variables and CLI flags on top of the stored configuration.
* **Cleanup bookkeeping** -- :func:`record_cache_cleanup` persists the time
  of the last cache cleanup so that the interval survives across runs.

Config writes and cache entry writes share :func:`atomic_write`.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from lfm.exceptions import ConfigError
from lfm.models import LfmConfig

_APP_NAME = "lfm"
_CONFIG_FILENAME = "config.json"

ENV_API_KEY = "LFM_API_KEY"
ENV_USER = "LFM_USER"

logger = logging.getLogger(__name__)


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(
    xdg_var: str, xdg_default: str, fallback: Optional[str], create: bool = True
) -> Path:
    """Resolve one of the application directories, creating it unless told not to.

    Args:
        xdg_var: XDG environment variable, e.g. ``XDG_CACHE_HOME``.
        xdg_default: Its default relative to ``$HOME``, e.g. ``.cache``.
        fallback: Sub-directory of ``~/.lfm`` used on non-XDG platforms;
            ``None`` for ``~/.lfm`` itself.
        create: Make the directory (and its parents) if missing.
    """
    if _is_xdg_platform():
        base = os.environ.get(xdg_var) or str(Path.home() / xdg_default)
        path = Path(base) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback:
            path = path / fallback
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir(create: bool = True) -> Path:
    """``$XDG_CONFIG_HOME/lfm`` (default ``~/.config/lfm``), or ``~/.lfm``."""
    return _app_dir("XDG_CONFIG_HOME", ".config", None, create)


def get_cache_dir(create: bool = True) -> Path:
    """Directory of the response cache.

    ``$XDG_CACHE_HOME/lfm`` (default ``~/.cache/lfm``) on Linux/BSD,
    ``~/.lfm/cache`` elsewhere. Every file in it belongs to
    :class:`~lfm.cache.store.CacheStore` and may be deleted at any time.

    Pass ``create=False`` where an unusable location must not stop the
    caller; the store creates the directory on its first write.
    """
    return _app_dir("XDG_CACHE_HOME", ".cache", "cache", create)


def get_data_dir() -> Path:
    """Directory for crash logs: ``$XDG_DATA_HOME/lfm`` or ``~/.lfm/logs``."""
    return _app_dir("XDG_DATA_HOME", os.path.join(".local", "share"), "logs")


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers never see a partial file.

    The text is written and fsynced to a hidden temp file next to *path*,
    then renamed over it with :func:`os.replace`. The temp file is removed
    if anything fails, and the error propagates.

    Args:
        path: Destination file. Parent directories are created on demand.
        data: Text to write, encoded as UTF-8.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        with handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        try:
            os.unlink(handle.name)
        except OSError:
            pass
        raise


# --- Config file ---


def config_path() -> Path:
    # atomic_write creates the directory when the file is first saved
    return get_config_dir(create=False) / _CONFIG_FILENAME


def load_config() -> LfmConfig:
    """Load the stored configuration, or the defaults if there is none.

    Raises:
        ConfigError: If the file exists but cannot be read, is not valid
            JSON or does not validate against :class:`~lfm.models.LfmConfig`.
    """
    path = config_path()
    if not path.is_file():
        return LfmConfig()
    try:
        return LfmConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as exc:
        # JSONDecodeError and pydantic's ValidationError are both ValueErrors
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: LfmConfig) -> None:
    atomic_write(config_path(), json.dumps(config.model_dump(mode="json"), indent=2) + "\n")


def record_cache_cleanup(when: datetime) -> None:
    """Persist *when* as the time of the last completed cache cleanup.

    The config file is re-read first so that settings changed by another
    invocation since this process started are not overwritten.

    Raises:
        ConfigError: If the stored config cannot be parsed.
    """
    config = load_config()
    config.cache.last_cleanup = when
    save_config(config)


# --- Precedence resolution ---


def resolve_config(cli_user: Optional[str] = None) -> LfmConfig:
    """Build the effective configuration for one invocation.

    Precedence (high to low):
        1. The ``--user`` flag (``cli_user``)
        2. Environment variables (``LFM_API_KEY``, ``LFM_USER``)
        3. The config file
        4. Defaults

    A config file that cannot be read or parsed is logged and replaced by
    the defaults with caching turned off, so a command can still answer
    from the network when the environment supplies the API key.

    The result is never written back, so overrides do not leak into the
    stored file.
    """
    try:
        config = load_config()
    except ConfigError as exc:
        logger.warning("%s; continuing with defaults and no cache", exc)
        config = LfmConfig()
        config.cache.enabled = False
    config.api_key = os.environ.get(ENV_API_KEY) or config.api_key
    config.default_username = (
        cli_user or os.environ.get(ENV_USER) or config.default_username
    )
    return config
