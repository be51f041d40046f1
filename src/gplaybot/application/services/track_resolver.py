"""Turns backend tracks into host songs."""

import logging

from gplaybot.domain.dtos import Track
from gplaybot.domain.entities import Song

logger = logging.getLogger(__name__)


class TrackResolver:
    """Map a Track to a Song, optionally delegating playback to a video provider.

    Pure transform, no network calls.
    """

    def __init__(
        self,
        provider_id: str,
        video_provider_id: str | None = None,
        show_videos: bool = False,
    ) -> None:
        self.provider_id = provider_id
        self.video_provider_id = video_provider_id
        self.show_videos = show_videos

    @property
    def video_delegation_enabled(self) -> bool:
        return self.show_videos and bool(self.video_provider_id)

    def resolve(self, track: Track) -> Song:
        album_art_url = track.album_art[0].url if track.album_art else None
        song = Song(
            id=track.id,
            title=track.title,
            description=track.artist,
            duration=track.duration_millis // 1000,
            provider_id=self.provider_id,
            album_art_url=album_art_url,
        )
        video_provider_id = self.video_provider_id
        if self.show_videos and video_provider_id and track.video is not None:
            logger.debug("Delegating song to video provider: %s", song.title)
            return song.with_provider(track.video.id, video_provider_id)
        return song
