"""External service integrations."""

from gplaybot.infrastructure.integrations.gplay_client import GPlayClient, GPlayStation
from gplaybot.infrastructure.integrations.token_provider import GPlayTokenProvider

__all__ = ["GPlayClient", "GPlayStation", "GPlayTokenProvider"]
