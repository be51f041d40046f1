"""
Host plugin interfaces for GPlayBot.

Hey future me – these are the two seams the music bot calls us through!
- IProvider: search, lookup and load songs
- ISuggester: pick the next song when the queue runs empty

Methods return Songs (domain entities), NEVER backend Tracks. Errors cross the
seam only as domain exceptions (NoSuchSongError, SongLoadingError,
InitializationError) – raw httpx errors stay inside the client.
"""

from abc import ABC, abstractmethod

from gplaybot.domain.entities import FileResource, Song


class IPlugin(ABC):
    """Lifecycle shared by all host plugins."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Plugin name shown to the host admin."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def subject(self) -> str:
        """Human-readable subject shown to users (e.g. "Based on <title>")."""
        ...

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the plugin for use.

        Raises:
            InitializationError: If the plugin can't be used
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources and cancel background work owned by the plugin."""
        ...


class IProvider(IPlugin):
    """
    Song provider.

    Implementierungs-Tipps:
    1. __init__ should be lightweight (no API calls)
    2. Log backend errors, surface domain exceptions
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Id stamped on every Song this provider serves."""
        ...

    @abstractmethod
    async def search(self, query: str, offset: int = 0) -> list[Song]:
        """
        Search songs.

        Returns:
            Up to 30 songs starting at offset; empty list on any failure
        """
        ...

    @abstractmethod
    async def lookup(self, song_id: str) -> Song:
        """
        Look up a song by id.

        Raises:
            NoSuchSongError: If the song can't be resolved
        """
        ...

    @abstractmethod
    async def load_song(self, song: Song) -> FileResource:
        """
        Make the song available in local storage.

        Raises:
            SongLoadingError: On download or file I/O failure
        """
        ...


class ISuggester(IPlugin):
    """Suggests songs when the queue is empty."""

    @abstractmethod
    async def suggest_next(self) -> Song:
        """Remove and return the next suggestion."""
        ...

    @abstractmethod
    async def get_next_suggestions(self, max_length: int) -> list[Song]:
        """Peek at up to max_length upcoming suggestions without removing them."""
        ...

    @abstractmethod
    async def notify_played(self, song: Song, from_queue: bool = False) -> None:
        """
        Tell the suggester a song was played.

        Args:
            song: The played song
            from_queue: True if the song came from the queue (not a manual play)
        """
        ...

    @abstractmethod
    async def remove_suggestion(self, song: Song) -> None:
        """The user rejected this suggestion."""
        ...


__all__ = ["IPlugin", "IProvider", "ISuggester"]
