"""Position provider fed by an MQTT location topic.

Payloads are JSON objects. OwnTracks ``location`` messages
(``lat``/``lon``/``tst``/``acc``) and plain
``latitude``/``longitude``/``timestamp``/``accuracy`` objects are accepted.
An OwnTracks ``lwt`` message marks the source disabled, and a
``{"_type": "status", "enabled": bool}`` message toggles it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from pymosque.config import MosqueConfig, ProviderProfile
from pymosque.models.fix import PositionFix
from pymosque.providers.base import BasePositionProvider

_logger = logging.getLogger(__name__)

# CONNACK reason codes for rejected credentials (MQTT 5 and 3.1.1 values).
_AUTH_REFUSED_CODES = frozenset({4, 5, 134, 135})


@dataclass(frozen=True)
class LocationMessage:
    """One decoded topic message."""

    fix: PositionFix | None = None
    enabled: bool | None = None


def decode_location_message(payload: bytes, profile: ProviderProfile) -> LocationMessage:
    """Decode a raw MQTT payload for *profile*.

    Unknown or unusable messages decode to an empty :class:`LocationMessage`.
    """
    try:
        parsed = json.loads(payload.decode("utf-8", errors="replace"))
    except json.JSONDecodeError:
        return LocationMessage()
    if not isinstance(parsed, dict):
        return LocationMessage()

    message_type = str(parsed.get("_type") or "location")
    if message_type == "lwt":
        return LocationMessage(enabled=False)
    if message_type == "status":
        enabled = parsed.get("enabled")
        return LocationMessage(enabled=enabled) if isinstance(enabled, bool) else LocationMessage()
    if message_type != "location":
        return LocationMessage()

    data: dict[str, Any] = dict(parsed)
    data["source"] = profile.name
    data["source_kind"] = profile.kind
    try:
        return LocationMessage(fix=PositionFix.model_validate(data))
    except ValidationError:
        return LocationMessage()


class MqttPositionProvider(BasePositionProvider):
    """Threaded paho-mqtt client that emits fixes onto an asyncio loop.

    The provider is unavailable until the broker accepts the connection.
    A broker refusing the credentials makes later subscriptions raise
    :class:`~pymosque.exceptions.PermissionDeniedError`.
    """

    def __init__(
        self,
        profile: ProviderProfile,
        config: MosqueConfig,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not profile.topic:
            raise ValueError(f"Provider {profile.name} has no MQTT topic")
        super().__init__(profile, enabled=False, logger=logger or _logger)
        self._config = config
        self._loop = loop
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def topic(self) -> str:
        return cast(str, self._profile.topic)

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is active."""
        return self._running

    async def connect(self) -> None:
        """Connect and subscribe; blocking paho calls run in the default executor."""
        loop = asyncio.get_running_loop()
        self._loop = loop
        await loop.run_in_executor(None, self._start_client)

    async def disconnect(self) -> None:
        loop = self._loop or asyncio.get_running_loop()
        await loop.run_in_executor(None, self._stop_client)
        self._dispatch_enabled(False)

    # ------------------------------------------------------------------
    # paho network thread
    # ------------------------------------------------------------------

    def _marshal(self, callback: Any, *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    def _on_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        code = getattr(reason_code, "value", reason_code)
        if code != 0:
            if code in _AUTH_REFUSED_CODES:
                self._logger.warning("MQTT broker refused credentials for %s: %s", self.name, reason_code)
                self._marshal(self._deny_permission, str(reason_code))
            else:
                self._logger.warning("MQTT connect failed for %s: %s", self.name, reason_code)
            return
        self._logger.debug("MQTT connected provider=%s topic=%s", self.name, self.topic)
        client.subscribe(self.topic, qos=0)
        self._marshal(self._dispatch_enabled, True)

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if self._running:
            self._logger.debug("MQTT disconnected provider=%s: %s", self.name, reason_code)
            self._marshal(self._dispatch_enabled, False)

    def _on_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        message = decode_location_message(msg.payload, self._profile)
        if message.fix is None and message.enabled is None:
            self._logger.debug("MQTT message ignored topic=%s", msg.topic)
            return
        self._marshal(self._apply_message, message)

    # ------------------------------------------------------------------
    # owning loop
    # ------------------------------------------------------------------

    def _apply_message(self, message: LocationMessage) -> None:
        if message.enabled is not None:
            self._dispatch_enabled(message.enabled)
        if message.fix is not None:
            if not self._enabled and self._client is not None:
                # A fresh location implies the device came back.
                self._dispatch_enabled(True)
            self._dispatch_fix(message.fix)

    def _deny_permission(self, reason: str) -> None:
        self._authorized = False
        self._dispatch_status("permission_denied", {"reason": reason})
        self._dispatch_enabled(False)

    # ------------------------------------------------------------------
    # blocking lifecycle (executor)
    # ------------------------------------------------------------------

    def _start_client(self) -> None:
        self._stop_client()
        config = self._config
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=f"pymosque-{self.name}",
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if config.mqtt_username:
            client.username_pw_set(config.mqtt_username, config.mqtt_password)
        if config.mqtt_tls:
            client.tls_set()

        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        self._logger.debug(
            "MQTT provider start host=%s port=%s topic=%s",
            config.mqtt_host,
            config.mqtt_port,
            self.topic,
        )
        client.connect(cast(str, config.mqtt_host), config.mqtt_port, keepalive=config.mqtt_keepalive)
        client.loop_start()
        self._client = client
        self._running = True

    def _stop_client(self) -> None:
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped provider=%s", self.name)
