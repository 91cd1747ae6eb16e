"""Client configuration for pymosque."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pymosque._constants import (
    DEFAULT_AMENITY,
    DEFAULT_RADIUS_M,
    DEFAULT_RELIGION,
    OVERPASS_URL,
    UNNAMED_LABEL,
    USER_AGENT,
)
from pymosque.exceptions import MosqueConfigError
from pymosque.models.fix import ProviderKind


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError as exc:
        raise MosqueConfigError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class ProviderProfile:
    """One physical position source.

    Parameters
    ----------
    name : str
        Provider identity carried on every fix (e.g. ``"gps"``).
    kind : ProviderKind
        Fine satellite or coarse network source. Decides debounce priority.
    min_interval_ms : int
        Minimum time between two delivered fixes.
    min_distance_m : float
        Minimum displacement between two delivered fixes.
    topic : str or None
        MQTT topic carrying the fixes when MQTT-backed.
    """

    name: str
    kind: ProviderKind
    min_interval_ms: int = 1000
    min_distance_m: float = 0.0
    topic: str | None = None


def _default_providers() -> tuple[ProviderProfile, ...]:
    return (
        ProviderProfile(name="gps", kind=ProviderKind.SATELLITE, min_interval_ms=2000, min_distance_m=5.0),
        ProviderProfile(name="network", kind=ProviderKind.NETWORK, min_interval_ms=1000, min_distance_m=25.0),
    )


@dataclasses.dataclass(frozen=True)
class MosqueConfig:
    """Library configuration.

    Parameters
    ----------
    endpoint : str
        Overpass interpreter URL.
    user_agent : str
        ``User-Agent`` header identifying the application. Required by
        the public Overpass instances.
    radius_m : int
        Default search radius in metres.
    connect_timeout : float
        Seconds allowed for establishing the HTTP connection.
    read_timeout : float
        Seconds allowed between reads of the HTTP response.
    max_retries : int
        Extra attempts after a transport failure, HTTP 429 or 5xx. The
        public backend is rate-limited, so this defaults to ``0``.
    retry_backoff : float
        Seconds to wait before each retry.
    http_method : str
        ``"GET"`` (query string) or ``"POST"`` (form body).
    amenity : str
        Value of the ``amenity`` tag to search for.
    religion : str
        Value of the ``religion`` tag to search for.
    query_timeout : int
        Server-side ``[timeout:]`` of the Overpass query in seconds.
    debounce_ms : int
        Window in which a coarse fix is discarded after a fine one.
    unnamed_label : str
        Name given to POIs without a usable ``name`` tag.
    name_language : str or None
        Prefer ``name:<language>`` over ``name`` when present.
    mqtt_host : str or None
        Broker host. When set, providers are fed from MQTT topics.
    mqtt_port : int
        Broker port.
    mqtt_username : str or None
        Broker user name.
    mqtt_password : str or None
        Broker password.
    mqtt_tls : bool
        Use TLS towards the broker.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    providers : tuple of ProviderProfile
        Position sources, fine satellite and coarse network by default.
    """

    endpoint: str = OVERPASS_URL
    user_agent: str = USER_AGENT
    radius_m: int = DEFAULT_RADIUS_M
    connect_timeout: float = 15.0
    read_timeout: float = 25.0
    max_retries: int = 0
    retry_backoff: float = 2.0
    http_method: str = "GET"
    amenity: str = DEFAULT_AMENITY
    religion: str = DEFAULT_RELIGION
    query_timeout: int = 25
    debounce_ms: int = 1000
    unnamed_label: str = UNNAMED_LABEL
    name_language: str | None = None
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    mqtt_keepalive: int = 60
    providers: tuple[ProviderProfile, ...] = dataclasses.field(default_factory=_default_providers)

    def __post_init__(self) -> None:
        if self.radius_m <= 0:
            raise MosqueConfigError(f"radius_m must be positive, got {self.radius_m}")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise MosqueConfigError("timeouts must be positive")
        if self.max_retries < 0:
            raise MosqueConfigError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.debounce_ms < 0:
            raise MosqueConfigError(f"debounce_ms must be >= 0, got {self.debounce_ms}")
        method = self.http_method.upper()
        if method not in {"GET", "POST"}:
            raise MosqueConfigError(f"http_method must be GET or POST, got {self.http_method!r}")
        object.__setattr__(self, "http_method", method)
        names = [profile.name for profile in self.providers]
        if len(names) != len(set(names)):
            raise MosqueConfigError(f"provider names must be unique: {names}")

    @classmethod
    def from_env(cls, **overrides: Any) -> MosqueConfig:
        """Create configuration from ``MOSQUE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "MOSQUE_ENDPOINT": "endpoint",
            "MOSQUE_USER_AGENT": "user_agent",
            "MOSQUE_HTTP_METHOD": "http_method",
            "MOSQUE_AMENITY": "amenity",
            "MOSQUE_RELIGION": "religion",
            "MOSQUE_UNNAMED_LABEL": "unnamed_label",
            "MOSQUE_NAME_LANGUAGE": "name_language",
            "MOSQUE_MQTT_HOST": "mqtt_host",
            "MOSQUE_MQTT_USERNAME": "mqtt_username",
            "MOSQUE_MQTT_PASSWORD": "mqtt_password",
        }
        _ENV_NUM_MAP: dict[str, tuple[str, type]] = {
            "MOSQUE_RADIUS_M": ("radius_m", int),
            "MOSQUE_CONNECT_TIMEOUT": ("connect_timeout", float),
            "MOSQUE_READ_TIMEOUT": ("read_timeout", float),
            "MOSQUE_MAX_RETRIES": ("max_retries", int),
            "MOSQUE_RETRY_BACKOFF": ("retry_backoff", float),
            "MOSQUE_QUERY_TIMEOUT": ("query_timeout", int),
            "MOSQUE_DEBOUNCE_MS": ("debounce_ms", int),
            "MOSQUE_MQTT_PORT": ("mqtt_port", int),
            "MOSQUE_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val
        for env_key, (field_name, cast) in _ENV_NUM_MAP.items():
            val = _env_number(env, env_key, cast)
            if val is not None:
                config_kwargs[field_name] = val

        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("MOSQUE_MQTT_TLS"), False)

        if "providers" not in overrides:
            config_kwargs["providers"] = _providers_from_env(env)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


def _providers_from_env(env: Mapping[str, str]) -> tuple[ProviderProfile, ...]:
    profiles: list[ProviderProfile] = []
    for default in _default_providers():
        prefix = f"MOSQUE_{default.name.upper()}"
        interval = _env_number(env, f"{prefix}_MIN_INTERVAL_MS", int)
        distance = _env_number(env, f"{prefix}_MIN_DISTANCE_M", float)
        profiles.append(
            dataclasses.replace(
                default,
                min_interval_ms=default.min_interval_ms if interval is None else interval,
                min_distance_m=default.min_distance_m if distance is None else distance,
                topic=env.get(f"{prefix}_TOPIC", default.topic),
            )
        )
    return tuple(profiles)
