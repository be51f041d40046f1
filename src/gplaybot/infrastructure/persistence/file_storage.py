"""Per-plugin directories for downloaded files."""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class LocalFileStorage:
    """Hands out one storage directory per plugin below a base directory."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def for_plugin(self, plugin_id: str, create: bool = True) -> Path:
        """Get the plugin's directory, creating it if asked.

        Raises:
            OSError: If the directory can't be created
        """
        directory = self.base_dir / "plugins" / _UNSAFE_CHARS.sub("_", plugin_id)
        if create and not directory.is_dir():
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug("Created plugin storage %s", directory)
        return directory
