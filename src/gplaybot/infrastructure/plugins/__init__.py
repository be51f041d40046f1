"""
GPlayBot plugin infrastructure.

Architektur:
    Host bot
       ↓
    GPlayMusicProvider (IProvider)      StationSuggester (ISuggester)
       ↓                                   ↓
    SongCache / SessionManager          TrackResolver + remote station
       ↓                                   ↓
    GPlayClient (HTTP calls) ───────────────┘
       ↓
    Play Music API
"""

from gplaybot.infrastructure.plugins.gplay_provider import GPlayMusicProvider

__all__ = ["GPlayMusicProvider"]
