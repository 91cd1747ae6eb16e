"""Build position providers from configuration."""

from __future__ import annotations

import asyncio
import logging

from pymosque.config import MosqueConfig
from pymosque.providers.base import BasePositionProvider
from pymosque.providers.manual import ManualPositionProvider
from pymosque.providers.mqtt import MqttPositionProvider

_logger = logging.getLogger(__name__)


def build_providers(
    config: MosqueConfig,
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> list[BasePositionProvider]:
    """Create one provider per configured profile.

    Profiles with a topic become MQTT-backed when ``config.mqtt_host`` is set.
    Everything else is a :class:`ManualPositionProvider` fed by the host.
    """
    providers: list[BasePositionProvider] = []
    for profile in config.providers:
        if config.mqtt_host and profile.topic:
            providers.append(MqttPositionProvider(profile, config, loop=loop))
        else:
            providers.append(ManualPositionProvider(profile))
        _logger.debug("Configured provider %s kind=%s", profile.name, profile.kind)
    return providers
