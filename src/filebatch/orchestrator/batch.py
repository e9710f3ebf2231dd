"""Batch parsing for filebatch.

A batch maps command names to ``{items, options}`` entries.  Parsing
validates the whole batch up front so that a malformed entry is reported
before any job runs.  Entries whose name is not a known command are
dropped.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..commands.registry import Command, parse_command
from ..errors import ConfigError


logger = logging.getLogger(__name__)


@dataclass
class CommandEntry:
    command: Command
    items: List[Any]
    options: Dict[str, Any]


@dataclass
class DispatchUnit:
    """One command's resolved work: items, merged options and parallelism."""

    command: Command
    items: List[Any]
    options: Dict[str, Any]
    parallel: int
    fingerprint: str
    cache_enabled: bool = True
    skip_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None

    @property
    def mode(self) -> str:
        return 'parallel' if self.parallel else 'sequential'

    @property
    def workers(self) -> int:
        return min(self.parallel, len(self.items)) if self.parallel else 1


def parse_batch(batch: Optional[Mapping[str, Any]]) -> List[CommandEntry]:
    """Validate ``batch`` and return its known commands in key order.

    Raises:
        ConfigError: if the batch or one of its entries is malformed.
    """
    if batch is None:
        return []
    if not isinstance(batch, Mapping):
        raise ConfigError(f'batch must be a mapping of commands, got {type(batch).__name__}')
    entries: List[CommandEntry] = []
    for name, entry in batch.items():
        command = parse_command(name)
        if command is None:
            logger.debug('ignoring unknown command %r', name)
            continue
        if entry is None:
            entry = {}
        if not isinstance(entry, Mapping):
            raise ConfigError(f"command '{name}' must be a mapping with 'items' and 'options'")
        items = entry.get('items')
        if items is None:
            items = []
        if not isinstance(items, (list, tuple)):
            raise ConfigError(f"'{name}.items' must be a list, got {type(items).__name__}")
        options = entry.get('options')
        if options is None:
            options = {}
        if not isinstance(options, Mapping):
            raise ConfigError(f"'{name}.options' must be a mapping, got {type(options).__name__}")
        entries.append(CommandEntry(command=command, items=list(items), options=dict(options)))
    return entries


def merge_options(global_options: Optional[Mapping[str, Any]], options: Mapping[str, Any]) -> Dict[str, Any]:
    """Shallow merge; keys of ``options`` win over ``global_options``."""
    merged = dict(global_options or {})
    merged.update(options)
    return merged


def worker_count(value: Any) -> int:
    """Normalise a ``parallel`` option to a worker count, ``0`` meaning sequential.

    Any falsy value (``None``, ``False``, ``0``, ``''``) means sequential;
    ``True`` means one worker per CPU.
    """
    if value is True:
        return os.cpu_count() or 1
    if not value:
        return 0
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if isinstance(value, int):
        if value < 0:
            raise ConfigError(f"'parallel' must not be negative, got {value}")
        return value
    raise ConfigError(f"'parallel' must be a worker count, got {value!r}")


def flag(options: Mapping[str, Any], name: str, default: bool) -> bool:
    value = options.get(name, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"'{name}' must be true or false, got {value!r}")
    return value
