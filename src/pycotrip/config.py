"""Client configuration for pycotrip."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Iterable, Mapping
from typing import Any

from pycotrip._constants import BASE_URL, DEFAULT_ENABLED_LAYERS, ENDPOINTS, REFRESH_TTL, REQUEST_TIMEOUT
from pycotrip.exceptions import CotripConfigError

_ENV_ENDPOINT_PREFIX = "COTRIP_ENDPOINT_"


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise CotripConfigError(f"{key} must be a number, got {value!r}") from exc


def _parse_layer_list(value: str) -> frozenset[str]:
    return frozenset(item.strip() for item in value.split(",") if item.strip())


def _env_endpoint_key(layer: str) -> str:
    # roadConditions -> COTRIP_ENDPOINT_ROADCONDITIONS
    return f"{_ENV_ENDPOINT_PREFIX}{layer.upper()}"


@dataclasses.dataclass(frozen=True)
class CotripConfig:
    """Client configuration.

    Parameters
    ----------
    api_key : str
        Static COtrip API key, appended to every request as ``apiKey``.
    base_url : str
        API base URL. Defaults to the public COtrip v1 endpoint.
    request_timeout : float
        Per-request timeout in seconds. A timed-out feed degrades to an
        empty layer.
    refresh_ttl : float
        Seconds between automatic refreshes while the host is active.
    endpoints : dict
        Endpoint path per layer key (``"roadConditions"`` -> ``"/roadConditions"``).
    default_layers : frozenset
        Layer keys enabled when a controller is created. Every other
        layer starts disabled.
    """

    api_key: str
    base_url: str = BASE_URL
    request_timeout: float = REQUEST_TIMEOUT
    refresh_ttl: float = REFRESH_TTL
    endpoints: dict[str, str] = dataclasses.field(default_factory=lambda: dict(ENDPOINTS))
    default_layers: frozenset[str] = DEFAULT_ENABLED_LAYERS

    def __post_init__(self) -> None:
        if not self.api_key or not self.api_key.strip():
            raise CotripConfigError("api_key must be non-empty")
        if self.request_timeout <= 0:
            raise CotripConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.refresh_ttl <= 0:
            raise CotripConfigError(f"refresh_ttl must be positive, got {self.refresh_ttl}")

        missing = set(ENDPOINTS) - set(self.endpoints)
        if missing:
            raise CotripConfigError(f"endpoints missing layers: {sorted(missing)}")
        unknown = set(self.default_layers) - set(ENDPOINTS)
        if unknown:
            raise CotripConfigError(f"default_layers contains unknown layers: {sorted(unknown)}")

        # Normalise mutable inputs so a frozen config stays frozen.
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "default_layers", frozenset(self.default_layers))

    def endpoint_for(self, layer: str) -> str:
        """Return the endpoint path configured for *layer*."""
        try:
            return self.endpoints[layer]
        except KeyError as exc:
            raise CotripConfigError(f"No endpoint configured for layer {layer!r}") from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> CotripConfig:
        """Create configuration from environment variables.

        Reads ``COTRIP_API_KEY`` and optional ``COTRIP_*`` variables.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        CotripConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        api_key = env.get("COTRIP_API_KEY")
        if api_key is not None:
            config_kwargs["api_key"] = api_key

        base_url = env.get("COTRIP_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url

        timeout_env = _env_float(env, "COTRIP_REQUEST_TIMEOUT")
        if timeout_env is not None:
            config_kwargs["request_timeout"] = timeout_env

        ttl_env = _env_float(env, "COTRIP_REFRESH_TTL")
        if ttl_env is not None:
            config_kwargs["refresh_ttl"] = ttl_env

        endpoints = dict(ENDPOINTS)
        for layer in ENDPOINTS:
            path = env.get(_env_endpoint_key(layer))
            if path is not None:
                endpoints[layer] = path
        # Allow overriding single endpoints via a partial dict
        endpoint_overrides = overrides.pop("endpoints", None)
        if isinstance(endpoint_overrides, Mapping):
            endpoints.update(endpoint_overrides)
        config_kwargs["endpoints"] = endpoints

        layers_env = env.get("COTRIP_LAYERS")
        if layers_env is not None and "default_layers" not in overrides:
            config_kwargs["default_layers"] = _parse_layer_list(layers_env)

        layer_overrides = overrides.pop("default_layers", None)
        if isinstance(layer_overrides, str):
            config_kwargs["default_layers"] = _parse_layer_list(layer_overrides)
        elif isinstance(layer_overrides, Iterable):
            config_kwargs["default_layers"] = frozenset(layer_overrides)

        config_kwargs.update(overrides)

        if "api_key" not in config_kwargs:
            raise CotripConfigError("COTRIP_API_KEY is not set")

        return cls(**config_kwargs)
