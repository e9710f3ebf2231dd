"""Tests for configuration loading and environment overrides."""

import json

import pytest

from filebatch.config_loader import apply_env_overrides, get_bool_env, load_config, parse_config
from filebatch.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ('FILEBATCH_PARALLEL', 'FILEBATCH_PROGRESS', 'FILEBATCH_CACHE', 'FILEBATCH_BACKEND'):
        monkeypatch.delenv(key, raising=False)


class TestLoadConfig:
    def test_yaml(self, tmp_path):
        path = tmp_path / 'filebatch.yml'
        path.write_text(
            'options:\n'
            '  parallel: 2\n'
            'events:\n'
            '  start:\n'
            '    del:\n'
            '      items: [dist]\n'
        )
        cfg = load_config(path)
        assert cfg['options'] == {'parallel': 2}
        assert cfg['events']['start']['del']['items'] == ['dist']

    def test_json(self, tmp_path):
        path = tmp_path / 'filebatch.json'
        path.write_text(json.dumps({'commands': {'copy': {'items': [{'source': 'a', 'destination': 'b'}]}}}))
        cfg = load_config(path)
        assert cfg['commands']['copy']['items'][0]['source'] == 'a'
        assert cfg['options'] == {}

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        assert load_config(path) == {'options': {}}

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / 'filebatch.toml'
        path.write_text('')
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'bad.yml'
        path.write_text('options: [unclosed\n')
        with pytest.raises(ConfigError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / 'absent.yml')


class TestParseConfig:
    @pytest.mark.parametrize(
        'payload',
        [
            ['options'],
            {'options': ['parallel']},
            {'commands': ['copy']},
            {'events': 'start'},
            {'custom_hooks': {'hook_name': 'x'}},
            {'jobs': {}},
        ],
    )
    def test_malformed(self, payload):
        with pytest.raises(ConfigError):
            parse_config(payload)


class TestEnvOverrides:
    def test_no_env_leaves_options(self):
        assert apply_env_overrides({'parallel': 2}) == {'parallel': 2}

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv('FILEBATCH_PARALLEL', '8')
        monkeypatch.setenv('FILEBATCH_PROGRESS', 'yes')
        monkeypatch.setenv('FILEBATCH_CACHE', '0')
        monkeypatch.setenv('FILEBATCH_BACKEND', 'thread')
        assert apply_env_overrides({'parallel': 2, 'cache': True}) == {
            'parallel': 8,
            'progress': True,
            'cache': False,
            'backend': 'thread',
        }

    def test_empty_parallel_is_ignored(self, monkeypatch):
        monkeypatch.setenv('FILEBATCH_PARALLEL', '')
        assert apply_env_overrides({'parallel': 2}) == {'parallel': 2}
        assert 'parallel' not in apply_env_overrides({})

    def test_bad_parallel(self, monkeypatch):
        monkeypatch.setenv('FILEBATCH_PARALLEL', 'lots')
        with pytest.raises(ConfigError):
            apply_env_overrides({})

    def test_applied_by_load_config(self, monkeypatch, tmp_path):
        monkeypatch.setenv('FILEBATCH_PARALLEL', '3')
        path = tmp_path / 'filebatch.yml'
        path.write_text('options:\n  parallel: 1\n')
        assert load_config(path)['options']['parallel'] == 3

    @pytest.mark.parametrize('value,expected', [('TRUE', True), ('no', False), ('1', True), ('maybe', False)])
    def test_get_bool_env(self, monkeypatch, value, expected):
        monkeypatch.setenv('FILEBATCH_PROGRESS', value)
        assert get_bool_env('FILEBATCH_PROGRESS', False) is expected
