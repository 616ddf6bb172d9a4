"""Configuration for the NetStorage client.

The configuration is an immutable value built once (from arguments, a JSON
config file and/or environment variables) and passed explicitly to
``NetStorageClient``.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from .exceptions import NetStorageConfigError
from .utils import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PYNETSTORAGE_CONFIG"

ENV_VARS = {
    "key": "NETSTORAGE_KEY",
    "key_name": "NETSTORAGE_KEY_NAME",
    "host": "NETSTORAGE_HOST",
    "ssl": "NETSTORAGE_SSL",
    "cp_code": "NETSTORAGE_CP_CODE",
}


@dataclass(frozen=True)
class RateLimitConfig:
    """Token bucket sizes per operation class."""

    read: int = 800
    """Max read operations (stat, du, download) per interval"""

    write: int = 25
    """Max write operations (upload, rm, mkdir, ...) per interval"""

    dir: int = 50
    """Max directory listings per interval"""

    interval: float = 1.0
    """Interval window in seconds"""


@dataclass(frozen=True)
class NetStorageConfig:
    """Credentials and request defaults for a NetStorage account."""

    key: str
    key_name: str
    host: str
    ssl: bool = True
    cp_code: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)

    def __post_init__(self) -> None:
        for name in ("key", "key_name", "host"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise NetStorageConfigError(name)
        if self.timeout <= 0:
            raise NetStorageConfigError("timeout", "`timeout` must be positive")

    @property
    def base_url(self) -> str:
        protocol = "https" if self.ssl else "http"
        return f"{protocol}://{self.host}"

    def request_path(self, path: str = "") -> str:
        """Build the URL path for a remote path, prefixed with the CP code.

        Examples:
            >>> cfg = NetStorageConfig("k", "name", "example.akamaihd.net", cp_code="123")
            >>> cfg.request_path("/dir/file.txt")
            '/123/dir/file.txt'
        """
        segments = []
        if self.cp_code:
            segments.append(self.cp_code.strip("/"))
        if path:
            segments.append(path.lstrip("/"))
        request_path = "/" + "/".join(segments)
        if request_path != "/":
            request_path = request_path.rstrip("/") or "/"
        return quote(request_path, safe="/")

    def uri(self, path: str = "") -> str:
        """Build the full request URL for a remote path."""
        return f"{self.base_url}{self.request_path(path)}"


def get_config_path() -> Path:
    """Get the path of the JSON config file.

    Returns:
        ``$PYNETSTORAGE_CONFIG`` if set, else ~/.config/pynetstorage/config.json
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".config" / "pynetstorage" / "config.json"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def load_config(
    config_path: Optional[Path] = None, **overrides: Any
) -> NetStorageConfig:
    """Load configuration from the config file and environment.

    Precedence (highest first): explicit overrides, environment variables,
    config file.

    Args:
        config_path: JSON config file (defaults to ``get_config_path()``)
        **overrides: Field values that take precedence over everything else

    Returns:
        Validated NetStorageConfig

    Raises:
        NetStorageConfigError: If a required field is missing or the file is invalid
    """
    path = config_path or get_config_path()
    values: dict[str, Any] = {}

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise NetStorageConfigError(
                "config", f"Failed to read config file {path}: {e}"
            ) from e
        if not isinstance(data, dict):
            raise NetStorageConfigError("config", f"Invalid config file: {path}")
        values.update(data)
        logger.debug(f"Loaded config from {path}")

    for name, env_var in ENV_VARS.items():
        env_value = os.environ.get(env_var)
        if env_value:
            values[name] = env_value

    values.update({k: v for k, v in overrides.items() if v is not None})

    rate_limits = values.pop("rate_limits", None)
    if isinstance(rate_limits, dict):
        values["rate_limits"] = RateLimitConfig(**rate_limits)
    elif isinstance(rate_limits, RateLimitConfig):
        values["rate_limits"] = rate_limits

    if "ssl" in values:
        values["ssl"] = _parse_bool(values["ssl"])
    if "timeout" in values:
        values["timeout"] = float(values["timeout"])

    known = {
        "key",
        "key_name",
        "host",
        "ssl",
        "cp_code",
        "timeout",
        "rate_limits",
    }
    unknown = set(values) - known
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")

    return NetStorageConfig(
        key=values.get("key", ""),
        key_name=values.get("key_name", ""),
        host=values.get("host", ""),
        **{k: v for k, v in values.items() if k in known - {"key", "key_name", "host"}},
    )


def save_config(config: NetStorageConfig, config_path: Optional[Path] = None) -> Path:
    """Write the configuration to the JSON config file.

    Args:
        config: Configuration to store
        config_path: Target file (defaults to ``get_config_path()``)

    Returns:
        Path of the written file
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "key": config.key,
        "key_name": config.key_name,
        "host": config.host,
        "ssl": config.ssl,
        "cp_code": config.cp_code,
        "timeout": config.timeout,
        "rate_limits": {
            "read": config.rate_limits.read,
            "write": config.rate_limits.write,
            "dir": config.rate_limits.dir,
            "interval": config.rate_limits.interval,
        },
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    path.chmod(0o600)
    return path
