"""Tests for the CSV and JSON run logs."""

import csv
import json

from filebatch.logging.logger import FIELDNAMES, CSVLogger, JSONLogger, report_record
from filebatch.orchestrator.runner import CommandOrchestrator, CommandReport


def make_report(**overrides):
    values = dict(
        command='copy',
        status='completed',
        mode='sequential',
        items=2,
        completed=2,
        workers=1,
        duration_ms=1.5,
        fingerprint='f' * 32,
    )
    values.update(overrides)
    return CommandReport(**values)


class TestReportRecord:
    def test_fields(self):
        record = report_record(make_report(error='disk full'), 'run-1', timestamp=10.0)
        assert tuple(record) == FIELDNAMES
        assert record['run_id'] == 'run-1'
        assert record['timestamp'] == 10.0
        assert record['error_msg'] == 'disk full'


class TestCSVLogger:
    def test_writes_rows_immediately(self, tmp_path):
        path = tmp_path / 'run.csv'
        logger = CSVLogger(path, 'run-1')
        logger(make_report())
        with path.open(newline='', encoding='utf-8') as f:
            rows = list(csv.DictReader(f))
        logger.close()
        assert rows[0]['command'] == 'copy'
        assert rows[0]['status'] == 'completed'


class TestJSONLogger:
    def test_flush_writes_all_records(self, tmp_path):
        path = tmp_path / 'run.json'
        logger = JSONLogger(path, 'run-2')
        logger(make_report())
        logger(make_report(command='del', status='skipped_empty', items=0, completed=0))
        assert not path.exists()
        logger.flush()
        records = json.loads(path.read_text(encoding='utf-8'))
        assert [r['command'] for r in records] == ['copy', 'del']
        assert {r['run_id'] for r in records} == {'run-2'}

    def test_as_orchestrator_listener(self, tmp_path, recorder, cache):
        path = tmp_path / 'run.json'
        logger = JSONLogger(path, 'run-3')
        orchestrator = CommandOrchestrator(executor=recorder, cache=cache, listeners=[logger])
        orchestrator.run({'copy': {'items': ['a']}, 'del': {'items': []}})
        logger.flush()
        records = json.loads(path.read_text(encoding='utf-8'))
        assert [(r['command'], r['status']) for r in records] == [('copy', 'completed'), ('del', 'skipped_empty')]
