"""Domain ports (interfaces) for dependency inversion.

Hey future me – the backend SDK, the token handshake and the host's config storage
are all EXTERNAL. The application layer only talks to these interfaces, so tests
plug in AsyncMocks and the real adapters live in infrastructure/.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from gplaybot.config import StreamQuality
from gplaybot.domain.dtos import AuthToken, Track

# Hey future me – host plugin interfaces live in a separate module!
# Import here for easy access: from gplaybot.domain.ports import IProvider
from gplaybot.domain.ports.plugin import IPlugin, IProvider, ISuggester


class ITrackService(ABC):
    """Track lookup, search and download on the backend."""

    @abstractmethod
    async def get_track(self, track_id: str) -> Track:
        """Get a track by id.

        Raises:
            AuthenticationError: If the token was rejected
            ExternalServiceError: On any other backend/transport failure
        """
        pass

    @abstractmethod
    async def search(self, query: str, max_results: int) -> list[Track]:
        """Search tracks, returning at most max_results."""
        pass

    @abstractmethod
    async def download(
        self, track: Track, quality: StreamQuality, destination: Path
    ) -> None:
        """Download the track's audio to destination."""
        pass


class IRemoteStation(ABC):
    """A server-side radio station."""

    @property
    @abstractmethod
    def station_id(self) -> str:
        """Backend id of the station."""
        pass

    @abstractmethod
    async def get_tracks(
        self,
        context: list[Track],
        recently_played: bool = True,
        new_recommendations: bool = True,
    ) -> list[Track]:
        """Fetch the next batch of station tracks.

        Args:
            context: Tracks the station should avoid repeating
            recently_played: Pass context as recently played tracks
            new_recommendations: Ask for fresh tracks instead of the cached feed
        """
        pass

    @abstractmethod
    async def delete(self) -> None:
        """Delete the station on the backend."""
        pass


class IStationService(ABC):
    """Creates radio stations."""

    @abstractmethod
    async def create(
        self, seed: Track, name: str, is_public: bool = False
    ) -> IRemoteStation:
        """Create a station seeded on a track."""
        pass


class ISessionClient(ABC):
    """The authenticated part of the backend client."""

    @abstractmethod
    async def connect(self, token: AuthToken) -> None:
        """Build a session with the token.

        Raises:
            AuthenticationError: If the backend rejects the token
        """
        pass

    @abstractmethod
    def change_token(self, token: AuthToken) -> None:
        """Swap the live token; the previous one is no longer used."""
        pass


class ITokenProvider(ABC):
    """Token exchange (the OAuth-like handshake is external)."""

    @abstractmethod
    def provide_token(self, token: str) -> AuthToken | None:
        """Wrap an existing token string, None if it is unusable."""
        pass

    @abstractmethod
    async def provide_token_for(
        self, username: str, password: str, device_id: str
    ) -> AuthToken:
        """Exchange credentials for a fresh token.

        Raises:
            TokenRefreshException: If the exchange is rejected or fails
        """
        pass

    @property
    @abstractmethod
    def last_fetched_at(self) -> float:
        """Epoch seconds of the last fresh exchange (0.0 if never)."""
        pass


class ITokenStore(ABC):
    """Persisted auth token (a config secret on the host)."""

    @abstractmethod
    def get_token(self) -> str | None:
        pass

    @abstractmethod
    def set_token(self, token: str | None) -> None:
        pass


class IStateStore(ABC):
    """Persisted plugin state entries."""

    @abstractmethod
    def get_state(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set_state(self, key: str, value: str | None) -> None:
        pass


__all__ = [
    "IPlugin",
    "IProvider",
    "IRemoteStation",
    "ISessionClient",
    "IStateStore",
    "IStationService",
    "ISuggester",
    "ITokenProvider",
    "ITokenStore",
    "ITrackService",
]
