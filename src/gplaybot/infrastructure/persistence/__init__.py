"""Persistence - plugin state and file storage."""

from gplaybot.infrastructure.persistence.file_storage import LocalFileStorage
from gplaybot.infrastructure.persistence.state_store import JsonStateStore

__all__ = ["JsonStateStore", "LocalFileStorage"]
