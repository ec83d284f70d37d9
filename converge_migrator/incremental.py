"""
Content-hash scan cache.

Remembers the records each file produced, keyed by file path and guarded
by the SHA-256 digest of the bytes that were classified. A file whose
digest changed is a miss and its stale entry is dropped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from converge_migrator.errors import ConfigurationError
from converge_migrator.models import EndpointRecord, ScanCacheEntry

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1


def _copy_records(records: list[EndpointRecord]) -> list[EndpointRecord]:
    return [replace(r, ssl_fields=list(r.ssl_fields)) for r in records]


class ScanCache:
    """Per-file cache of classification results."""

    def __init__(self) -> None:
        self._entries: dict[str, ScanCacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_path: str) -> bool:
        return file_path in self._entries

    def get(self, file_path: str, digest: str) -> list[EndpointRecord] | None:
        """
        Look up a file's records.

        Returns:
            The cached records if the digest matches, else None.
        """
        entry = self._entries.get(file_path)
        if entry is not None and entry.content_digest == digest:
            self.hits += 1
            return _copy_records(entry.cached_endpoints)

        if entry is not None:
            logger.debug("Cache entry for %s is stale", file_path)
            del self._entries[file_path]
        self.misses += 1
        return None

    def put(self, file_path: str, digest: str, records: list[EndpointRecord]) -> None:
        """Store a file's records, including an empty result."""
        self._entries[file_path] = ScanCacheEntry(content_digest=digest, cached_endpoints=_copy_records(records))

    def discard(self, file_path: str) -> None:
        self._entries.pop(file_path, None)

    def clear(self) -> None:
        """Drop all entries and reset the hit/miss counters."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def statistics(self) -> dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "entries": len(self._entries),
            "total_endpoints": sum(len(e.cached_endpoints) for e in self._entries.values()),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": CACHE_FORMAT_VERSION,
            "entries": {
                path: {
                    "digest": entry.content_digest,
                    "endpoints": [r.to_dict() for r in entry.cached_endpoints],
                }
                for path, entry in self._entries.items()
            },
        }

    def save(self, path: Path) -> None:
        """Write the cache as JSON."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Saved scan cache (%d entries) to %s", len(self._entries), path)

    @classmethod
    def load(cls, path: Path) -> "ScanCache":
        """
        Read a cache written by ``save``.

        Raises:
            ConfigurationError: If the file is unreadable or not a cache file.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not load scan cache {path}: {e}") from e

        if not isinstance(data, dict) or data.get("version") != CACHE_FORMAT_VERSION:
            raise ConfigurationError(f"Scan cache {path} has an unsupported format")

        cache = cls()
        try:
            for file_path, entry in data.get("entries", {}).items():
                cache.put(
                    file_path,
                    entry["digest"],
                    [EndpointRecord.from_dict(r) for r in entry.get("endpoints", [])],
                )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Scan cache {path} is corrupt: {e}") from e

        logger.info("Loaded scan cache (%d entries) from %s", len(cache), path)
        return cache
