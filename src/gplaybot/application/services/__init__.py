"""Application services.

Services in this package:
- track_resolver.py: TrackResolver (backend Track -> host Song, video delegation)
- session_manager.py: SessionManager (login, rate-limited token refresh)
- station_suggester.py: StationSuggester (radio station backed suggestions)
- plugin_scope.py: PluginScope (cancellable task group per plugin instance)
"""

from gplaybot.application.services.plugin_scope import PluginScope, ScopeClosedError
from gplaybot.application.services.session_manager import (
    Credentials,
    SessionManager,
    SessionState,
)
from gplaybot.application.services.station_suggester import StationSuggester
from gplaybot.application.services.track_resolver import TrackResolver

__all__ = [
    "Credentials",
    "PluginScope",
    "ScopeClosedError",
    "SessionManager",
    "SessionState",
    "StationSuggester",
    "TrackResolver",
]
