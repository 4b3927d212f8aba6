"""
Round result caching.

Each round of the picker is expensive, so its selected colors are stored under
a key built from the base file name and the round label. Entries never expire:
delete the cache files after changing the base colors.
"""

import json
import logging
from pathlib import Path

from accent_errors import CacheError
from color_math import Color


logger = logging.getLogger(__name__)


class RoundCache:
    """Key to color list storage."""

    def load(self, key):
        """Return the stored colors for key, or None when nothing is stored."""
        raise NotImplementedError

    def store(self, key, colors):
        raise NotImplementedError


class NullRoundCache(RoundCache):
    """Never hits and never stores."""

    def load(self, key):
        return None

    def store(self, key, colors):
        pass


class MemoryRoundCache(RoundCache):
    def __init__(self):
        self.entries = {}

    def load(self, key):
        if key not in self.entries:
            return None
        return list(self.entries[key])

    def store(self, key, colors):
        self.entries[key] = list(colors)


class FileRoundCache(RoundCache):
    """One JSON file per key: cache-<key>.json holding [{"color": "#rrggbb", ...}]."""

    def __init__(self, directory='.'):
        self.directory = Path(directory)

    def path_for(self, key):
        return self.directory / f"cache-{key}.json"

    def load(self, key):
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding='utf-8') as f:
                entries = json.load(f)
        except json.JSONDecodeError as e:
            raise CacheError(path, f"invalid JSON ({e})") from e
        except (OSError, UnicodeDecodeError) as e:
            raise CacheError(path, f"cannot read cache ({e})") from e
        if not isinstance(entries, list):
            raise CacheError(path, "expected a JSON array")

        colors = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or 'color' not in entry:
                raise CacheError(path, f"entry {index} has no 'color' field")
            try:
                colors.append(Color.from_hex(entry['color']))
            except ValueError as e:
                raise CacheError(path, f"entry {index}: {e}") from e
        logger.info("Results loaded from cache: %s", path)
        return colors

    def store(self, key, colors):
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        entries = [
            {'color': color.hex, 'luma': color.luma, 'lab': list(color.lab)}
            for color in colors
        ]
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(entries, f)
        logger.debug("Results written to cache: %s", path)


def memoize(cache, key, compute, *args):
    """Return the cached colors for key, computing and storing them on a miss."""
    cached = cache.load(key)
    if cached is not None:
        return cached
    result = compute(*args)
    cache.store(key, result)
    return result
