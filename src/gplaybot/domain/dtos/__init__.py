"""Data transfer objects for the Play Music backend.

Hey future me – these mirror the backend's JSON, nothing more! They're read-only
and owned by the client. Convert them to Songs via TrackResolver, never pass them
to the host.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AlbumArt:
    """One album art image reference."""

    url: str


@dataclass(frozen=True)
class VideoRef:
    """Alternate media (a YouTube video) attached to a track."""

    id: str
    thumbnail_url: str | None = None


@dataclass(frozen=True)
class Track:
    """Play Music track data."""

    id: str
    title: str
    artist: str
    duration_millis: int
    album: str | None = None
    album_art: tuple[AlbumArt, ...] = field(default_factory=tuple)
    video: VideoRef | None = None

    # Hey future me, library tracks carry "id", all-access (store) tracks only carry
    # "nid" or "storeId". We prefer storeId since that's what fetchtrack accepts.
    # durationMillis arrives as a STRING from the backend, hence the int().
    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Track":
        """Parse a backend track record."""
        track_id = data.get("storeId") or data.get("nid") or data["id"]
        video_data = data.get("primaryVideo")
        video = None
        if video_data and video_data.get("id"):
            thumbnails = video_data.get("thumbnails") or []
            video = VideoRef(
                id=video_data["id"],
                thumbnail_url=thumbnails[0].get("url") if thumbnails else None,
            )
        return cls(
            id=track_id,
            title=data.get("title", ""),
            artist=data.get("artist", ""),
            duration_millis=int(data.get("durationMillis", 0)),
            album=data.get("album"),
            album_art=tuple(
                AlbumArt(url=ref["url"])
                for ref in data.get("albumArtRef") or []
                if ref.get("url")
            ),
            video=video,
        )


@dataclass(frozen=True)
class AuthToken:
    """Auth token plus the time it was fetched (epoch seconds)."""

    token: str
    fetched_at: float

    def __repr__(self) -> str:
        return f"AuthToken(token='***', fetched_at={self.fetched_at})"


__all__ = ["AlbumArt", "AuthToken", "Track", "VideoRef"]
