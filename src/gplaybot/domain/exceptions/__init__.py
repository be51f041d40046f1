"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - always use a specific subclass so callers
    # can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class NoSuchSongError(EntityNotFoundException):
    """A song could not be looked up.

    The underlying failure (network, auth, parse) is always chained as __cause__.
    """

    def __init__(self, song_id: str) -> None:
        super().__init__("Song", song_id)
        self.song_id = song_id


class SongLoadingError(DomainException):
    """Downloading a song to local storage failed.

    HTTP Status: 502 (the host decides whether to skip or abort playback)
    """

    pass


class InitializationError(DomainException):
    """Plugin startup failed and the plugin must not be used.

    Example:
        raise InitializationError("Unable to create song directory")
    """

    pass


class ConfigurationError(DomainException):
    """Required configuration is missing or invalid."""

    pass


class ExternalServiceError(DomainException):
    """The streaming backend returned an error or could not be reached.

    HTTP Status: 502 (Bad Gateway)
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ExternalServiceError):
    """The backend rejected our auth token (HTTP 401) or no token could be obtained."""

    def __init__(self, message: str, status_code: int | None = 401) -> None:
        super().__init__(message, status_code)


class TokenRefreshException(DomainException):
    """Raised when exchanging credentials for a fresh token fails.

    Hey future me - username/password/device id are wrong, or Google flagged the login.
    Nothing we can retry automatically; the user has to fix the credentials.
    """

    def __init__(
        self,
        message: str = "Token exchange failed. Check username, password and device id.",
        error_code: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code  # e.g. "BadAuthentication"
        self.http_status = http_status

    @property
    def requires_reauth(self) -> bool:
        """Check if the credentials themselves were rejected."""
        return self.error_code == "BadAuthentication" or self.http_status in (401, 403)


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DomainException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "InitializationError",
    "NoSuchSongError",
    "SongLoadingError",
    "TokenRefreshException",
]
