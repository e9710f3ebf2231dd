"""Run logs for filebatch.

Writes one record per command of a run.  The ``CSVLogger`` writes each
record immediately, while ``JSONLogger`` stores records in a list and
writes them to disk when flushed.  Both are meant to be passed to
``CommandOrchestrator`` as listeners.
"""

from __future__ import annotations

import csv
import json
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..orchestrator.runner import CommandReport


FIELDNAMES = (
    'run_id',
    'timestamp',
    'command',
    'status',
    'mode',
    'items',
    'completed',
    'workers',
    'duration_ms',
    'fingerprint',
    'error_msg',
)


def report_record(report: CommandReport, run_id: str, timestamp: Optional[float] = None) -> Dict[str, Any]:
    record = asdict(report)
    record['error_msg'] = record.pop('error')
    record['run_id'] = run_id
    record['timestamp'] = timestamp if timestamp is not None else time.time()
    return {name: record[name] for name in FIELDNAMES}


class CSVLogger:
    def __init__(self, path: Path, run_id: str):
        self.path = path
        self.run_id = run_id
        self.file = path.open('w', newline='', encoding='utf-8')
        self.writer = csv.DictWriter(self.file, fieldnames=FIELDNAMES)
        self.writer.writeheader()

    def __call__(self, report: CommandReport) -> None:
        self.log_report(report)

    def log_report(self, report: CommandReport) -> None:
        self.writer.writerow(report_record(report, self.run_id))
        self.file.flush()

    def close(self) -> None:
        self.file.close()


class JSONLogger:
    def __init__(self, path: Path, run_id: str):
        self.path = path
        self.run_id = run_id
        self.records: List[Dict[str, Any]] = []

    def __call__(self, report: CommandReport) -> None:
        self.add_record(report)

    def add_record(self, report: CommandReport) -> None:
        self.records.append(report_record(report, self.run_id))

    def flush(self) -> None:
        with self.path.open('w', encoding='utf-8') as f:
            json.dump(self.records, f, indent=2)
