"""Runtime settings for the Monica client.

Everything is read from ``MONICA_*`` environment variables, optionally seeded
from a ``.env`` file. Bad numeric values fall back to defaults with a warning
rather than failing startup.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple, TypeVar, Union

from monica_client.api.client import (
    DEFAULT_PAGE_LIMIT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RESOURCE_TIMEOUT,
)
from monica_client.security.redaction import install_secrets_redaction_filter

logger = logging.getLogger(__name__)

MEMORY_CACHE = ":memory:"
ENV_PREFIX = "MONICA_"

# Never settable from a .env file, whatever their prefix.
_PROTECTED_KEYS = frozenset({
    "PATH", "HOME", "USER", "SHELL",
    "LD_PRELOAD", "LD_LIBRARY_PATH", "LD_AUDIT",
    "PYTHONPATH", "PYTHONHOME", "PYTHONSTARTUP",
})

N = TypeVar("N", int, float)


def _parse_env_line(raw: str) -> Optional[Tuple[str, str]]:
    """``KEY=VALUE`` / ``export KEY=VALUE`` -> (key, value); None for blanks and comments."""
    line = raw.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1]
    return key, value


def load_env_file(path: Union[str, "os.PathLike[str]"], *, override: bool = False) -> List[str]:
    """Export the ``MONICA_*`` assignments of a .env file into ``os.environ``.

    Other keys are skipped with a warning and values are never logged.
    Variables already present in the environment win unless ``override``.

    Returns:
        Keys that were set, in file order.
    """
    env_path = Path(path).expanduser()
    if not env_path.is_file():
        return []

    loaded: List[str] = []
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        parsed = _parse_env_line(raw)
        if parsed is None:
            continue
        key, value = parsed
        if key in _PROTECTED_KEYS or not key.startswith(ENV_PREFIX):
            logger.warning("Ignoring non-client key in %s: %s", env_path.name, key)
            continue
        if key in os.environ and not override:
            continue
        os.environ[key] = value
        loaded.append(key)

    logger.debug("Loaded %d settings from %s", len(loaded), env_path.name)
    return loaded


def _default_data_dir() -> Path:
    config_home = Path(os.path.expanduser(os.getenv("XDG_CONFIG_HOME", "~/.config")))
    return (config_home / "monica-client").resolve()


def _env_number(name: str, default: N, cast: Callable[[str], N]) -> N:
    """Positive number from ``name``, or ``default`` when unset or invalid."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        value = None
    if value is None or not math.isfinite(value) or value <= 0:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    return value


def _env_path(name: str) -> Optional[Path]:
    raw = (os.getenv(name) or "").strip()
    return Path(os.path.expanduser(raw)).resolve() if raw else None


@dataclass(frozen=True)
class ClientSettings:
    data_dir: Path
    cache_path: Optional[Path]  # None keeps the cache in memory
    vault_path: Path
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    resource_timeout: float = DEFAULT_RESOURCE_TIMEOUT
    page_limit: int = DEFAULT_PAGE_LIMIT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, env_file: Optional[str] = None) -> "ClientSettings":
        """Resolve settings from ``MONICA_*`` environment variables.

        Env:
          - MONICA_DATA_DIR (default: $XDG_CONFIG_HOME/monica-client)
          - MONICA_CACHE_PATH (default: <data_dir>/contacts.json, ``:memory:`` for none)
          - MONICA_VAULT_PATH (default: <data_dir>/vault.json)
          - MONICA_REQUEST_TIMEOUT / MONICA_RESOURCE_TIMEOUT (seconds)
          - MONICA_PAGE_LIMIT
          - MONICA_LOG_LEVEL
        """
        if env_file:
            load_env_file(env_file)

        data_dir = _env_path("MONICA_DATA_DIR") or _default_data_dir()

        cache_path: Optional[Path]
        if (os.getenv("MONICA_CACHE_PATH") or "").strip() == MEMORY_CACHE:
            cache_path = None
        else:
            cache_path = _env_path("MONICA_CACHE_PATH") or data_dir / "contacts.json"

        return cls(
            data_dir=data_dir,
            cache_path=cache_path,
            vault_path=_env_path("MONICA_VAULT_PATH") or data_dir / "vault.json",
            request_timeout=_env_number("MONICA_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, float),
            resource_timeout=_env_number("MONICA_RESOURCE_TIMEOUT", DEFAULT_RESOURCE_TIMEOUT, float),
            page_limit=_env_number("MONICA_PAGE_LIMIT", DEFAULT_PAGE_LIMIT, int),
            log_level=(os.getenv("MONICA_LOG_LEVEL") or "INFO").strip().upper() or "INFO",
        )


def configure_logging(level: Union[str, int] = "INFO") -> None:
    """Set up root logging with token redaction on every handler."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    install_secrets_redaction_filter()


__all__ = ["ClientSettings", "ENV_PREFIX", "MEMORY_CACHE", "configure_logging", "load_env_file"]
