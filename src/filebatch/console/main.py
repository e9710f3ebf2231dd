"""Command-line interface for filebatch.

``run`` executes the batches of a configuration file, ``plan`` shows how
they would be dispatched without touching the filesystem and
``show-config`` prints the configuration after environment overrides.
"""

from __future__ import annotations

import json
import logging
import multiprocessing
import sys
import uuid
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config_loader import load_config
from ..errors import CommandFailedError, ConfigError
from ..hooks.events import (
    BUILTIN_EVENT_NAMES,
    BUILTIN_EVENTS_MAP,
    FileManagerPlugin,
    LifecycleHost,
    hook_fire_order,
    translate_hooks,
)
from ..logging.logger import CSVLogger, JSONLogger
from ..orchestrator.runner import CommandOrchestrator, CommandReport
from ..supervisor.manager import BACKENDS
from .progress import RichProgressSink


console = Console()

EXIT_FAILED = 1
EXIT_CONFIG = 2


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(config_path: str) -> Dict[str, Any]:
    try:
        return load_config(Path(config_path))
    except ConfigError as exc:
        console.print(f'[bold red]Configuration error:[/] {exc}')
        sys.exit(EXIT_CONFIG)


def _report_table(reports: List[CommandReport]) -> Table:
    table = Table(title='File manager run')
    table.add_column('Command')
    table.add_column('Status')
    table.add_column('Mode')
    table.add_column('Items', justify='right')
    table.add_column('Completed', justify='right')
    table.add_column('Workers', justify='right')
    table.add_column('Duration (ms)', justify='right')
    for report in reports:
        style = 'red' if report.status == 'failed' else ('dim' if report.status.startswith('skipped') else '')
        table.add_row(
            report.command,
            report.status,
            report.mode,
            str(report.items),
            str(report.completed),
            str(report.workers),
            f'{report.duration_ms:.0f}',
            style=style,
        )
    return table


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Log every job.')
def cli(verbose: bool) -> None:
    """filebatch: run batches of copy/move/del/zip/unzip/rename jobs."""
    _setup_logging(verbose)


@cli.command()
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default='filebatch.yml', help='Path to configuration file.')
@click.option('--event', 'events', multiple=True, type=click.Choice(BUILTIN_EVENT_NAMES), help='Lifecycle event to fire; repeatable. Defaults to every configured hook.')
@click.option('--parallel', type=click.IntRange(min=0), default=None, help='Worker count, 0 for sequential.')
@click.option('--no-cache', is_flag=True, help='Run commands even when their items are unchanged.')
@click.option('--progress/--no-progress', default=None, help='Show a progress bar.')
@click.option('--backend', type=click.Choice(BACKENDS), default=None, help='Worker backend for parallel commands.')
@click.option('--log-csv', type=click.Path(dir_okay=False, path_type=Path), default=None, help='Write a CSV run log.')
@click.option('--log-json', type=click.Path(dir_okay=False, path_type=Path), default=None, help='Write a JSON run log.')
def run(
    config_path: str,
    events: tuple,
    parallel: Optional[int],
    no_cache: bool,
    progress: Optional[bool],
    backend: Optional[str],
    log_csv: Optional[Path],
    log_json: Optional[Path],
) -> None:
    """Run the batches of a configuration file."""
    cfg = _load(config_path)
    options = dict(cfg['options'])
    if parallel is not None:
        options['parallel'] = parallel
    if no_cache:
        options['cache'] = False
    if progress is not None:
        options['progress'] = progress
    if backend is not None:
        options['backend'] = backend
    cfg['options'] = options

    run_id = uuid.uuid4().hex[:12]
    reports: List[CommandReport] = []
    listeners = [reports.append]
    csv_logger = CSVLogger(log_csv, run_id) if log_csv else None
    json_logger = JSONLogger(log_json, run_id) if log_json else None
    listeners.extend(logger for logger in (csv_logger, json_logger) if logger is not None)

    exit_code = 0
    sink_context = RichProgressSink(console) if options.get('progress') else nullcontext()
    try:
        with sink_context as sink:
            orchestrator = CommandOrchestrator(
                progress=sink, backend=options.get('backend', 'process'), listeners=listeners
            )
            host = LifecycleHost()
            registrations = translate_hooks(cfg)
            for registration in registrations:
                host.add_hook(registration.hook_name)
            FileManagerPlugin(cfg, orchestrator).apply(host)

            if cfg.get('commands'):
                orchestrator.run(cfg['commands'], options)
            if events:
                hook_names = [BUILTIN_EVENTS_MAP[event][1] for event in events]
            else:
                hook_names = hook_fire_order(registrations)
            for hook_name in hook_names:
                host.hooks[hook_name].call()
    except ConfigError as exc:
        console.print(f'[bold red]Configuration error:[/] {exc}')
        exit_code = EXIT_CONFIG
    except CommandFailedError as exc:
        console.print(f'[bold red]Command {exc.command!r} failed[/] on item {exc.job!r}: {exc.reason}')
        exit_code = EXIT_FAILED
    finally:
        if csv_logger is not None:
            csv_logger.close()
        if json_logger is not None:
            json_logger.flush()

    if reports:
        console.print(_report_table(reports))
    if exit_code:
        sys.exit(exit_code)


@cli.command()
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default='filebatch.yml', help='Path to configuration file.')
def plan(config_path: str) -> None:
    """Show how each configured batch would be dispatched."""
    cfg = _load(config_path)
    options = cfg['options']
    orchestrator = CommandOrchestrator()

    batches = []
    if cfg.get('commands'):
        batches.append(('commands', cfg['commands']))
    try:
        batches.extend((r.hook_name, r.commands) for r in translate_hooks(cfg))
        table = Table(title='Dispatch plan')
        table.add_column('Hook')
        table.add_column('Command')
        table.add_column('Items', justify='right')
        table.add_column('Mode')
        table.add_column('Workers', justify='right')
        table.add_column('Skip')
        table.add_column('Fingerprint')
        for source, batch in batches:
            for unit in orchestrator.plan(batch, options):
                table.add_row(
                    source,
                    unit.command.value,
                    str(len(unit.items)),
                    unit.mode,
                    str(unit.workers),
                    unit.skip_reason or '',
                    unit.fingerprint[:12],
                )
    except ConfigError as exc:
        console.print(f'[bold red]Configuration error:[/] {exc}')
        sys.exit(EXIT_CONFIG)
    console.print(table)


@cli.command()
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default='filebatch.yml', help='Path to configuration file.')
def show_config(config_path: str) -> None:
    """Print the configuration after environment overrides."""
    cfg = _load(config_path)
    console.print_json(json.dumps(cfg, indent=2, default=str))


def main() -> None:
    multiprocessing.freeze_support()
    cli()


if __name__ == '__main__':  # pragma: no cover
    main()
