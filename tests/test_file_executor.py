"""Tests for the filesystem executor and its transfer/archive handlers."""

import tarfile
import zipfile

import pytest

from filebatch.commands.registry import Command
from filebatch.errors import ExecutorError
from filebatch.executor.capability import HANDLERS, FileExecutor


@pytest.fixture
def executor():
    return FileExecutor()


@pytest.fixture
def options(tmp_path):
    return {'context': str(tmp_path)}


@pytest.fixture
def site(tmp_path):
    """A small directory tree under ``tmp_path / 'site'``."""
    root = tmp_path / 'site'
    (root / 'css').mkdir(parents=True)
    (root / 'index.html').write_text('<html></html>')
    (root / 'css' / 'app.css').write_text('body {}')
    (root / 'notes.md').write_text('# notes')
    return root


def test_every_command_has_a_handler():
    assert set(HANDLERS) == set(Command)


class TestCopy:
    def test_file_to_new_path(self, executor, options, tmp_path):
        (tmp_path / 'a.txt').write_text('hello')
        executor.execute(Command.COPY, {'source': 'a.txt', 'destination': 'out/b.txt'}, options)
        assert (tmp_path / 'out' / 'b.txt').read_text() == 'hello'
        assert (tmp_path / 'a.txt').exists()

    def test_trailing_slash_copies_into_directory(self, executor, options, tmp_path):
        (tmp_path / 'a.txt').write_text('hello')
        executor.execute(Command.COPY, {'source': 'a.txt', 'destination': 'out/'}, options)
        assert (tmp_path / 'out' / 'a.txt').read_text() == 'hello'

    def test_glob_source(self, executor, options, tmp_path):
        for name in ('one.txt', 'two.txt', 'skip.log'):
            (tmp_path / name).write_text(name)
        executor.execute(Command.COPY, {'source': '*.txt', 'destination': 'out'}, options)
        assert sorted(p.name for p in (tmp_path / 'out').iterdir()) == ['one.txt', 'two.txt']

    def test_directory_recursively(self, executor, options, site, tmp_path):
        executor.execute(Command.COPY, {'source': 'site', 'destination': 'public'}, options)
        assert (tmp_path / 'public' / 'css' / 'app.css').read_text() == 'body {}'

    def test_missing_source_fails(self, executor, options):
        with pytest.raises(ExecutorError) as exc_info:
            executor.execute(Command.COPY, {'source': 'nope.txt', 'destination': 'out.txt'}, options)
        assert exc_info.value.command == 'copy'
        assert 'nope.txt' in exc_info.value.reason

    def test_no_overwrite(self, executor, tmp_path):
        (tmp_path / 'a.txt').write_text('new')
        (tmp_path / 'b.txt').write_text('old')
        with pytest.raises(ExecutorError):
            executor.execute(
                Command.COPY,
                {'source': 'a.txt', 'destination': 'b.txt'},
                {'context': str(tmp_path), 'overwrite': False},
            )
        assert (tmp_path / 'b.txt').read_text() == 'old'

    def test_verify_with_checksum(self, executor, site, tmp_path):
        executor.execute(
            Command.COPY,
            {'source': 'site', 'destination': 'mirror'},
            {'context': str(tmp_path), 'verify': 'sha256'},
        )
        assert (tmp_path / 'mirror' / 'index.html').exists()

    def test_unknown_tool(self, executor, tmp_path):
        (tmp_path / 'a.txt').write_text('x')
        with pytest.raises(ExecutorError):
            executor.execute(
                Command.COPY, {'source': 'a.txt', 'destination': 'b.txt'}, {'context': str(tmp_path), 'tool': 'ftp'}
            )

    @pytest.mark.parametrize('job', ['a.txt', {'source': 'a.txt'}, {'destination': 'b.txt'}])
    def test_malformed_job(self, executor, options, job):
        with pytest.raises(ExecutorError):
            executor.execute(Command.COPY, job, options)


class TestMove:
    def test_file(self, executor, options, tmp_path):
        (tmp_path / 'a.txt').write_text('hello')
        executor.execute(Command.MOVE, {'source': 'a.txt', 'destination': 'dist/a.txt'}, options)
        assert not (tmp_path / 'a.txt').exists()
        assert (tmp_path / 'dist' / 'a.txt').read_text() == 'hello'

    def test_replaces_existing_destination(self, executor, options, tmp_path):
        (tmp_path / 'a.txt').write_text('new')
        (tmp_path / 'b.txt').write_text('old')
        executor.execute(Command.MOVE, {'source': 'a.txt', 'destination': 'b.txt'}, options)
        assert (tmp_path / 'b.txt').read_text() == 'new'


class TestDelete:
    def test_directory(self, executor, options, site):
        executor.execute(Command.DEL, {'source': 'site'}, options)
        assert not site.exists()

    def test_plain_string_job(self, executor, options, tmp_path):
        (tmp_path / 'a.txt').write_text('x')
        executor.execute(Command.DEL, 'a.txt', options)
        assert not (tmp_path / 'a.txt').exists()

    def test_glob(self, executor, options, site):
        executor.execute(Command.DEL, {'source': 'site/**/*.css'}, options)
        assert not (site / 'css' / 'app.css').exists()
        assert (site / 'index.html').exists()

    def test_missing_is_ignored_by_default(self, executor, options):
        executor.execute(Command.DEL, {'source': 'ghost'}, options)

    def test_missing_fails_when_required(self, executor, tmp_path):
        with pytest.raises(ExecutorError):
            executor.execute(Command.DEL, {'source': 'ghost'}, {'context': str(tmp_path), 'missing_ok': False})

    def test_refuses_context_directory(self, executor, options, tmp_path):
        with pytest.raises(ExecutorError) as exc_info:
            executor.execute(Command.DEL, {'source': '.'}, options)
        assert 'force' in exc_info.value.reason
        assert tmp_path.exists()


class TestRename:
    def test_file(self, executor, options, tmp_path):
        (tmp_path / 'old.js').write_text('x')
        executor.execute(Command.RENAME, {'source': 'old.js', 'destination': 'new.js'}, options)
        assert (tmp_path / 'new.js').exists()
        assert not (tmp_path / 'old.js').exists()

    def test_existing_destination_needs_overwrite(self, executor, options, tmp_path):
        (tmp_path / 'old.js').write_text('x')
        (tmp_path / 'new.js').write_text('y')
        with pytest.raises(ExecutorError):
            executor.execute(Command.RENAME, {'source': 'old.js', 'destination': 'new.js'}, options)
        executor.execute(
            Command.RENAME,
            {'source': 'old.js', 'destination': 'new.js'},
            {'context': str(tmp_path), 'overwrite': True},
        )
        assert (tmp_path / 'new.js').read_text() == 'x'

    def test_missing_source(self, executor, options):
        with pytest.raises(ExecutorError):
            executor.execute(Command.RENAME, {'source': 'nope', 'destination': 'x'}, options)


class TestArchives:
    def test_zip_directory_contents(self, executor, options, site, tmp_path):
        executor.execute(Command.ZIP, {'source': 'site', 'destination': 'build/site.zip'}, options)
        with zipfile.ZipFile(tmp_path / 'build' / 'site.zip') as archive:
            assert sorted(archive.namelist()) == ['css/app.css', 'index.html', 'notes.md']

    def test_zip_extension_filter(self, executor, options, site, tmp_path):
        job = {'source': 'site', 'destination': 'site.zip', 'extensions': ['html', '.css']}
        executor.execute(Command.ZIP, job, options)
        with zipfile.ZipFile(tmp_path / 'site.zip') as archive:
            assert sorted(archive.namelist()) == ['css/app.css', 'index.html']

    def test_tgz_inferred_from_suffix(self, executor, options, site, tmp_path):
        executor.execute(Command.ZIP, {'source': 'site', 'destination': 'site.tar.gz'}, options)
        with tarfile.open(tmp_path / 'site.tar.gz', 'r:gz') as archive:
            assert 'css/app.css' in archive.getnames()

    def test_zip_then_unzip(self, executor, options, site, tmp_path):
        executor.execute(Command.ZIP, {'source': 'site', 'destination': 'site.tar', 'type': 'tar'}, options)
        executor.execute(Command.UNZIP, {'source': 'site.tar', 'destination': 'restored'}, options)
        assert (tmp_path / 'restored' / 'css' / 'app.css').read_text() == 'body {}'

    def test_unknown_type(self, executor, options, site):
        with pytest.raises(ExecutorError):
            executor.execute(Command.ZIP, {'source': 'site', 'destination': 'a.rar', 'type': 'rar'}, options)

    def test_unzip_missing_archive(self, executor, options):
        with pytest.raises(ExecutorError):
            executor.execute(Command.UNZIP, {'source': 'none.zip', 'destination': 'out'}, options)

    def test_unzip_rejects_member_outside_destination(self, executor, options, tmp_path):
        with zipfile.ZipFile(tmp_path / 'evil.zip', 'w') as archive:
            archive.writestr('../escaped.txt', 'x')
        with pytest.raises(ExecutorError) as exc_info:
            executor.execute(Command.UNZIP, {'source': 'evil.zip', 'destination': 'out'}, options)
        assert 'escapes' in exc_info.value.reason
        assert not (tmp_path / 'escaped.txt').exists()

    def test_unzip_corrupt_archive(self, executor, options, tmp_path):
        (tmp_path / 'broken.zip').write_text('not a zip')
        with pytest.raises(ExecutorError):
            executor.execute(Command.UNZIP, {'source': 'broken.zip', 'destination': 'out'}, options)

    def test_untar_rejects_member_outside_destination(self, executor, options, tmp_path):
        payload = tmp_path / 'payload.txt'
        payload.write_text('x')
        with tarfile.open(tmp_path / 'evil.tar', 'w') as archive:
            archive.add(payload, arcname='../escaped.txt')
        with pytest.raises(ExecutorError):
            executor.execute(Command.UNZIP, {'source': 'evil.tar', 'destination': 'out'}, options)
        assert not (tmp_path / 'escaped.txt').exists()
