"""Position sources."""

from pymosque.providers.base import BasePositionProvider, PositionProvider, SubscriptionHandle
from pymosque.providers.factory import build_providers
from pymosque.providers.manual import ManualPositionProvider
from pymosque.providers.mqtt import MqttPositionProvider

__all__ = [
    "BasePositionProvider",
    "ManualPositionProvider",
    "MqttPositionProvider",
    "PositionProvider",
    "SubscriptionHandle",
    "build_providers",
]
