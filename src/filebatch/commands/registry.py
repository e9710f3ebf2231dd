"""Command registry for filebatch.

The six file operations a batch may name.  Anything else in a batch is
ignored by the orchestrator.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class Command(str, Enum):
    COPY = 'copy'
    MOVE = 'move'
    DEL = 'del'
    ZIP = 'zip'
    UNZIP = 'unzip'
    RENAME = 'rename'


COMMAND_LIST = tuple(command.value for command in Command)


def parse_command(name: object) -> Optional[Command]:
    """Return the ``Command`` for ``name`` or ``None`` when it is not one of the six."""
    if isinstance(name, Command):
        return name
    if isinstance(name, str) and name in COMMAND_LIST:
        return Command(name)
    return None
