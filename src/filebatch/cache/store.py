"""Result cache for filebatch.

A command whose item list has not changed since its last successful run
is skipped.  The comparison is done on a fingerprint of the whole list,
so reordering items or touching any field of any item invalidates it.

The store is in memory only and lives as long as the process.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Protocol, Sequence

from ..errors import ConfigError
from ..metadata.scanner import compute_digest


def fingerprint(items: Sequence[Any]) -> str:
    """Return a deterministic fingerprint of ``items``.

    Items are serialised as canonical JSON (sorted keys, compact
    separators) and hashed with xxh128.  Values JSON cannot represent are
    serialised through ``str``.

    Raises:
        ConfigError: if the items cannot be serialised, for example a
            mapping that mixes string and integer keys.
    """
    try:
        payload = json.dumps(list(items), sort_keys=True, separators=(',', ':'), default=str)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f'cannot fingerprint items: {exc}') from exc
    return compute_digest(payload.encode('utf-8'))


class ResultCache(Protocol):
    def get(self, command: str) -> Optional[str]:
        """Return the stored fingerprint for ``command``, if any."""

    def set(self, command: str, value: str) -> None:
        """Store the fingerprint of the last successful run of ``command``."""


class MemoryResultCache:
    """Dictionary backed ``ResultCache``.  Not thread safe."""

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}

    def get(self, command: str) -> Optional[str]:
        return self._entries.get(command)

    def set(self, command: str, value: str) -> None:
        self._entries[command] = value

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


_DEFAULT_CACHE = MemoryResultCache()


def default_cache() -> MemoryResultCache:
    """Return the process-wide cache used when none is injected."""
    return _DEFAULT_CACHE
