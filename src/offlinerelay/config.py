"""Worker configuration for offlinerelay."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from urllib.parse import urljoin, urlsplit

from offlinerelay._constants import (
    CONTEXT_PATH,
    DEFAULT_ASSETS,
    DEFAULT_CACHE_NAME,
    FALLBACK_PATH,
    NETWORK_SCHEMES,
    RECONNECT_DELAY_S,
)
from offlinerelay.exceptions import RelayConfigError


def _env_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise RelayConfigError(f"{name} must be a number, got {value!r}") from exc


def _env_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise RelayConfigError(f"{name} must be an integer, got {value!r}") from exc


def _split_assets(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclasses.dataclass(frozen=True)
class RelayConfig:
    """Worker configuration.

    Parameters
    ----------
    origin : str
        Application origin, e.g. ``"https://app.example.com"``.  Assets are
        fetched from it and the relay WebSocket endpoint is derived from it.
    cache_name : str
        Name of the live cache generation.  Changing it on a new deployment
        makes every previous generation stale.
    assets : tuple of str
        Asset manifest: paths that must always be present in the live
        generation.  Populated on install.
    fallback_path : str
        Cached document served to navigation requests while offline.
    reconnect_delay : float
        Seconds between an upstream close and the next connect attempt.
    fetch_timeout : float or None
        Total timeout for a single origin fetch.  ``None`` applies no timeout.
    listen_host : str
        Interface the local host binds to.
    listen_port : int
        Port the local host binds to.
    context_path : str
        Path of the WebSocket endpoint foreground contexts attach to.
    """

    origin: str
    cache_name: str = DEFAULT_CACHE_NAME
    assets: tuple[str, ...] = DEFAULT_ASSETS
    fallback_path: str = FALLBACK_PATH
    reconnect_delay: float = RECONNECT_DELAY_S
    fetch_timeout: float | None = None
    listen_host: str = "127.0.0.1"
    listen_port: int = 8080
    context_path: str = CONTEXT_PATH

    def __post_init__(self) -> None:
        parts = urlsplit(self.origin)
        if parts.scheme not in NETWORK_SCHEMES or not parts.netloc:
            raise RelayConfigError(f"origin must be an http(s) URL with a host, got {self.origin!r}")
        # Keep only scheme://host[:port].
        object.__setattr__(self, "origin", f"{parts.scheme}://{parts.netloc}")
        if not self.cache_name:
            raise RelayConfigError("cache_name must be non-empty")
        if not self.assets:
            raise RelayConfigError("asset manifest must list at least one path")
        object.__setattr__(self, "assets", tuple(self.assets))
        if self.reconnect_delay < 0:
            raise RelayConfigError("reconnect_delay must be >= 0")
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            raise RelayConfigError("fetch_timeout must be positive when set")
        if not self.context_path.startswith("/"):
            raise RelayConfigError("context_path must start with '/'")

    @property
    def is_secure(self) -> bool:
        return self.origin.startswith("https:")

    @property
    def relay_url(self) -> str:
        """Upstream duplex endpoint: same host, ``wss`` when the origin is secure."""
        scheme = "wss" if self.is_secure else "ws"
        host = urlsplit(self.origin).netloc
        return f"{scheme}://{host}"

    def resolve(self, path: str) -> str:
        """Return the absolute origin URL for *path*."""
        return urljoin(self.origin + "/", path)

    @classmethod
    def from_env(cls, **overrides: Any) -> RelayConfig:
        """Create configuration from ``RELAY_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "RELAY_ORIGIN": "origin",
            "RELAY_CACHE_NAME": "cache_name",
            "RELAY_FALLBACK_PATH": "fallback_path",
            "RELAY_LISTEN_HOST": "listen_host",
            "RELAY_CONTEXT_PATH": "context_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        assets_env = env.get("RELAY_ASSETS")
        if assets_env is not None:
            config_kwargs["assets"] = _split_assets(assets_env)

        delay_env = env.get("RELAY_RECONNECT_DELAY")
        if delay_env is not None and "reconnect_delay" not in overrides:
            config_kwargs["reconnect_delay"] = _env_float(delay_env, "RELAY_RECONNECT_DELAY")

        timeout_env = env.get("RELAY_FETCH_TIMEOUT")
        if timeout_env and "fetch_timeout" not in overrides:
            config_kwargs["fetch_timeout"] = _env_float(timeout_env, "RELAY_FETCH_TIMEOUT")

        port_env = env.get("RELAY_LISTEN_PORT")
        if port_env is not None and "listen_port" not in overrides:
            config_kwargs["listen_port"] = _env_int(port_env, "RELAY_LISTEN_PORT")

        config_kwargs.update({k: v for k, v in overrides.items() if v is not None})

        if "origin" not in config_kwargs:
            raise RelayConfigError("RELAY_ORIGIN is not set")
        return cls(**config_kwargs)
