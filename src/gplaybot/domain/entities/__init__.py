"""Domain entities handed to the host bot."""

from dataclasses import dataclass, replace
from pathlib import Path


# Hey future me, Song is what the HOST sees - never leak a Track past the provider!
# It's frozen because the bot hashes and compares songs in its queue. provider_id is
# the plugin that plays the song; it differs from ours when we delegate to YouTube.
@dataclass(frozen=True)
class Song:
    """Normalized song representation."""

    id: str
    title: str
    description: str
    duration: int  # whole seconds
    provider_id: str
    album_art_url: str | None = None

    def with_provider(self, song_id: str, provider_id: str) -> "Song":
        """Return a copy served by a different provider under a different id."""
        return replace(self, id=song_id, provider_id=provider_id)


@dataclass(frozen=True)
class FileResource:
    """A song file in local storage, ready to be played."""

    path: Path

    @property
    def is_valid(self) -> bool:
        """Check that the file still exists."""
        return self.path.is_file()

    def free(self) -> None:
        """Delete the file (missing files are fine)."""
        self.path.unlink(missing_ok=True)


__all__ = ["FileResource", "Song"]
