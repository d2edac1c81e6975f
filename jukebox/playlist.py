"""Playlist file — the user's song list, kept between runs."""
import json
import logging
from pathlib import Path

from .models import SongEntry

logger = logging.getLogger(__name__)


def load_playlist(path: Path) -> list[SongEntry]:
    """Read the saved playlist. Missing or unreadable files give an empty list."""
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Could not read playlist %s: %s", path, e)
        return []
    if not isinstance(data, list):
        logger.warning("Playlist %s is not a list, ignoring it", path)
        return []

    songs = []
    for item in data:
        try:
            songs.append(SongEntry.from_dict(item))
        except (KeyError, TypeError, AttributeError):
            logger.warning("Skipping bad playlist entry: %r", item)
    return songs


def save_playlist(path: Path, songs) -> None:
    """Atomic write — write to tmp then replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps([s.to_dict() for s in songs], indent=2))
    tmp.replace(path)
    logger.debug("Saved %d songs to %s", len(songs), path)
