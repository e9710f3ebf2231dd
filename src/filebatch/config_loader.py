"""Configuration loading for filebatch.

A configuration file is YAML (``.yml``/``.yaml``) or JSON with this
shape, every section optional::

    options:          # global options, merged under each command's options
      parallel: 4
      progress: true
      cache: true
    commands: {...}   # a batch run directly by ``filebatch run``
    events:           # batches attached to the start/end lifecycle events
      start: {...}
      end: {...}
    custom_hooks:     # explicit hook registrations, replace ``events``
      - {hook_type: tap_promise, hook_name: afterEmit, commands: {...}}

Environment variables override the global options:
``FILEBATCH_PARALLEL``, ``FILEBATCH_PROGRESS``, ``FILEBATCH_CACHE`` and
``FILEBATCH_BACKEND``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from .errors import ConfigError


SECTIONS = ('options', 'commands', 'events', 'custom_hooks')


def get_bool_env(key: str, default: bool) -> bool:
    """Read a boolean from the environment (true/false, yes/no, 1/0)."""
    val = os.getenv(key)
    if val is None:
        return default
    val_lower = val.strip().lower()
    if val_lower in ('true', 'yes', '1'):
        return True
    elif val_lower in ('false', 'no', '0'):
        return False
    return default


def apply_env_overrides(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``options`` with ``FILEBATCH_*`` variables applied."""
    result = dict(options)
    parallel = os.getenv('FILEBATCH_PARALLEL', '').strip()
    if parallel:
        try:
            result['parallel'] = int(parallel)
        except ValueError:
            raise ConfigError(f'FILEBATCH_PARALLEL must be an integer, got {parallel!r}') from None
    if os.getenv('FILEBATCH_PROGRESS') is not None:
        result['progress'] = get_bool_env('FILEBATCH_PROGRESS', bool(result.get('progress', False)))
    if os.getenv('FILEBATCH_CACHE') is not None:
        result['cache'] = get_bool_env('FILEBATCH_CACHE', bool(result.get('cache', True)))
    backend = os.getenv('FILEBATCH_BACKEND')
    if backend:
        result['backend'] = backend
    return result


def parse_config(payload: Any) -> Dict[str, Any]:
    """Validate the top level of a configuration payload."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ConfigError(f'configuration must be a mapping, got {type(payload).__name__}')
    unknown = sorted(set(payload) - set(SECTIONS))
    if unknown:
        raise ConfigError(f"unknown configuration section(s): {', '.join(map(str, unknown))}")
    options = payload.get('options') or {}
    if not isinstance(options, dict):
        raise ConfigError(f"'options' must be a mapping, got {type(options).__name__}")
    for section in ('commands', 'events'):
        value = payload.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(f"'{section}' must be a mapping, got {type(value).__name__}")
    hooks = payload.get('custom_hooks')
    if hooks is not None and not isinstance(hooks, list):
        raise ConfigError(f"'custom_hooks' must be a list, got {type(hooks).__name__}")
    config = dict(payload)
    config['options'] = apply_env_overrides(options)
    return config


def load_config(path: Path) -> Dict[str, Any]:
    """Load and validate a configuration file.

    Raises:
        ConfigError: for unreadable, unparsable or malformed files.
    """
    try:
        text = path.read_text(encoding='utf-8')
    except OSError as exc:
        raise ConfigError(f'cannot read {path}: {exc}') from exc
    suffix = path.suffix.lower()
    try:
        if suffix == '.json':
            payload = json.loads(text)
        elif suffix in ('.yml', '.yaml'):
            payload = yaml.safe_load(text)
        else:
            raise ConfigError(f"unsupported configuration format '{suffix}'")
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f'cannot parse {path}: {exc}') from exc
    return parse_config(payload)
