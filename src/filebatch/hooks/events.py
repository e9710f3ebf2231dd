"""Lifecycle hook integration for filebatch.

A host (a build tool, a deploy script) exposes named lifecycle hooks.
``FileManagerPlugin`` translates the ``events`` or ``custom_hooks``
section of a configuration into hook registrations and attaches one
callback per registration.  Three calling conventions are supported, the
hook's ``hook_type`` choosing between them:

``tap``
    blocking call, returns once the batch has run.
``tap_async``
    callback style, ``fn(*args, callback)``; the batch runs on a
    background thread and ``callback(error)`` is invoked when it ends.
``tap_promise``
    returns an awaitable.

``LifecycleHost`` is a small in-process host used by the CLI.

Example configuration::

    options:
      parallel: 4
    events:
      start:
        del:
          items: [./dist]
      end:
        zip:
          items:
            - {source: ./dist, destination: ./build/dist.zip}
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..errors import ConfigError
from ..orchestrator.batch import parse_batch
from ..orchestrator.runner import CommandOrchestrator, RunReport


logger = logging.getLogger(__name__)

NAMESPACE_REGISTER_NAME = 'REGISTER_'
HOOK_TYPES = ('tap', 'tap_async', 'tap_promise')

BUILTIN_EVENTS_MAP = {
    'start': ('tap_async', 'beforeRun'),
    'end': ('tap_async', 'afterEmit'),
}
BUILTIN_EVENT_NAMES = tuple(BUILTIN_EVENTS_MAP)
DEFAULT_HOOK_NAMES = tuple(hook_name for _, hook_name in BUILTIN_EVENTS_MAP.values())


@dataclass
class HookRegistration:
    hook_type: str
    hook_name: str
    register_name: str
    commands: Mapping[str, Any]


def translate_hooks(config: Mapping[str, Any]) -> List[HookRegistration]:
    """Turn ``events``/``custom_hooks`` into hook registrations.

    Custom hooks take precedence: when any are configured, ``events`` is
    ignored.  Unknown event names and events without commands are
    skipped.
    """
    custom_hooks = config.get('custom_hooks') or []
    result: List[HookRegistration] = []
    if custom_hooks:
        for hook in custom_hooks:
            if not isinstance(hook, Mapping) or not hook.get('hook_name'):
                raise ConfigError(f'custom hook needs a hook_name: {hook!r}')
            hook_name = hook['hook_name']
            result.append(
                HookRegistration(
                    hook_type=hook.get('hook_type', 'tap_async'),
                    hook_name=hook_name,
                    register_name=hook.get('register_name') or NAMESPACE_REGISTER_NAME + hook_name,
                    commands=hook.get('commands') or {},
                )
            )
        return result

    events = config.get('events') or {}
    if not isinstance(events, Mapping):
        raise ConfigError(f"'events' must be a mapping, got {type(events).__name__}")
    for event, commands in events.items():
        if event not in BUILTIN_EVENTS_MAP:
            logger.debug('ignoring unknown event %r', event)
            continue
        if not commands:
            continue
        hook_type, hook_name = BUILTIN_EVENTS_MAP[event]
        result.append(
            HookRegistration(
                hook_type=hook_type,
                hook_name=hook_name,
                register_name=NAMESPACE_REGISTER_NAME + hook_name,
                commands=commands,
            )
        )
    return result


def hook_fire_order(registrations: Sequence[HookRegistration]) -> List[str]:
    """Return the registered hook names in lifecycle order.

    Built-in hooks come first (``beforeRun`` then ``afterEmit``), whatever
    order the configuration lists them in; any other hook names follow in
    registration order.
    """
    registered = list(dict.fromkeys(r.hook_name for r in registrations))
    builtin = [name for name in DEFAULT_HOOK_NAMES if name in registered]
    return builtin + [name for name in registered if name not in DEFAULT_HOOK_NAMES]


@dataclass
class _Tap:
    kind: str
    name: str
    fn: Callable[..., Any]


def _settle(future: 'asyncio.Future[None]', error: Optional[BaseException]) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(None)


class Hook:
    """A named hook; taps run in registration order when it is called."""

    def __init__(self, name: str):
        self.name = name
        self._taps: List[_Tap] = []

    def tap(self, name: str, fn: Callable[..., Any]) -> None:
        self._taps.append(_Tap('tap', name, fn))

    def tap_async(self, name: str, fn: Callable[..., Any]) -> None:
        self._taps.append(_Tap('tap_async', name, fn))

    def tap_promise(self, name: str, fn: Callable[..., Any]) -> None:
        self._taps.append(_Tap('tap_promise', name, fn))

    @property
    def taps(self) -> List[str]:
        return [tap.name for tap in self._taps]

    async def call_async(self, *args: Any) -> None:
        for tap in list(self._taps):
            if tap.kind == 'tap':
                tap.fn(*args)
            elif tap.kind == 'tap_promise':
                await tap.fn(*args)
            else:
                loop = asyncio.get_running_loop()
                done = loop.create_future()

                def callback(error: Optional[BaseException] = None, _done=done) -> None:
                    loop.call_soon_threadsafe(_settle, _done, error)

                tap.fn(*args, callback)
                await done

    def call(self, *args: Any) -> None:
        """Fire every tap and block until all of them finished."""
        asyncio.run(self.call_async(*args))


class LifecycleHost:
    def __init__(self, hook_names: Sequence[str] = DEFAULT_HOOK_NAMES):
        self.hooks: Dict[str, Hook] = {name: Hook(name) for name in hook_names}

    def add_hook(self, name: str) -> Hook:
        return self.hooks.setdefault(name, Hook(name))


class FileManagerPlugin:
    """Attach command batches to a host's lifecycle hooks."""

    def __init__(self, config: Optional[Mapping[str, Any]] = None, orchestrator: Optional[CommandOrchestrator] = None):
        self.config: Mapping[str, Any] = config if isinstance(config, Mapping) else {}
        self.orchestrator = orchestrator if orchestrator is not None else CommandOrchestrator()
        self.hook_types: Dict[str, Callable[[Mapping[str, Any]], Callable[..., Any]]] = {
            'tap': self.tap_callback,
            'tap_async': self.tap_async_callback,
            'tap_promise': self.tap_promise_callback,
        }

    @property
    def global_options(self) -> Mapping[str, Any]:
        return self.config.get('options') or {}

    def handle_command(self, commands: Mapping[str, Any]) -> RunReport:
        return self.orchestrator.run(commands, self.global_options)

    def tap_callback(self, commands: Mapping[str, Any]) -> Callable[..., RunReport]:
        def blocking(*args: Any) -> RunReport:
            return self.handle_command(commands)

        return blocking

    def tap_async_callback(self, commands: Mapping[str, Any]) -> Callable[..., None]:
        def callback_style(*args: Any) -> None:
            done = args[-1]

            def work() -> None:
                try:
                    self.handle_command(commands)
                except Exception as exc:
                    done(exc)
                    return
                done(None)

            threading.Thread(target=work, name='filebatch-hook').start()

        return callback_style

    def tap_promise_callback(self, commands: Mapping[str, Any]) -> Callable[..., Any]:
        async def promise_style(*args: Any) -> RunReport:
            return await self.orchestrator.run_async(commands, self.global_options)

        return promise_style

    def apply(self, host: LifecycleHost) -> List[HookRegistration]:
        """Register every configured hook on ``host``.

        Batches are validated here, before anything can run.  Hooks with an
        unknown ``hook_type`` are skipped; a ``hook_name`` the host does not
        expose is a configuration error.
        """
        registrations = translate_hooks(self.config)
        applied: List[HookRegistration] = []
        for registration in registrations:
            factory = self.hook_types.get(registration.hook_type)
            if factory is None:
                logger.warning(
                    'skipping hook %s: unknown hook type %r', registration.hook_name, registration.hook_type
                )
                continue
            hook = host.hooks.get(registration.hook_name)
            if hook is None:
                raise ConfigError(f'host has no hook named {registration.hook_name!r}')
            parse_batch(registration.commands)
            getattr(hook, registration.hook_type)(registration.register_name, factory(registration.commands))
            applied.append(registration)
        return applied
