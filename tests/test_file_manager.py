from __future__ import annotations

import logging
import zipfile

import pytest

from fstoolkit.schemas import QueryOptions, SearchOptions
from fstoolkit.services.manager import FileManager
from fstoolkit.services.tree import INVALID_PATTERN


@pytest.fixture
def manager(tmp_path):
    return FileManager(str(tmp_path / 'sandbox'), trusted_roots=[])


@pytest.fixture
def root(manager):
    return manager.ops.root


def test_constructor_creates_sandbox_root(tmp_path):
    manager = FileManager(str(tmp_path / 'fresh' / 'root'), trusted_roots=[])

    assert (tmp_path / 'fresh' / 'root').is_dir()
    assert manager.is_sandboxed


def test_unsandboxed_manager_allows_any_path(tmp_path):
    manager = FileManager()

    assert not manager.is_sandboxed
    assert manager.write(str(tmp_path / 'free.txt'), 'ok') == 'ok'


def test_escape_attempts_return_sentinels(manager, tmp_path, caplog):
    (tmp_path / 'outside.txt').write_text('secret')

    with caplog.at_level(logging.WARNING):
        assert manager.read('../outside.txt') is None
        assert manager.remove('../outside.txt') is False
        assert manager.copy('../outside.txt', 'here') is False
        assert manager.get_storage_size('../../etc', 'b') is None

    assert (tmp_path / 'outside.txt').read_text() == 'secret'
    assert 'escapes sandbox' in caplog.text


def test_create_and_remove_directory(manager, root):
    assert manager.create_directory('a/b') is True
    assert manager.create_directory('a/b') is True
    assert manager.delete_directory('a') is True
    assert not (root / 'a').exists()


def test_remove_missing_path_succeeds(manager):
    assert manager.remove('nothing/here') is True


def test_directory_tree_accepts_plain_mapping(manager, root):
    (root / 'foo').mkdir()
    (root / 'foo' / 'bar.txt').write_text('hello')

    hit = manager.get_directory_tree('.', {'search': {'content': 'hell'}})
    miss = manager.get_directory_tree('.', {'search': {'content': 'xyz'}})
    kept = manager.get_directory_tree('.', {'showEmptyFolders': True, 'search': {'content': 'xyz'}})

    assert hit.splitlines() == ['sandbox/', '└ foo/', '   └ bar.txt']
    assert miss == 'sandbox/'
    assert kept.splitlines() == ['sandbox/', '└ foo/']


def test_directory_tree_reports_invalid_pattern(manager):
    options = QueryOptions(search=SearchOptions(regex='[unclosed'))

    assert manager.get_directory_tree('.', options) == INVALID_PATTERN
    assert manager.get_directory_tree('.', {'search': {'contentRegex': '('}}) == INVALID_PATTERN


def test_directory_tree_missing_and_bad_options(manager):
    assert manager.get_directory_tree('missing') is None
    assert manager.get_directory_tree('.', {'sort': {'by': 'colour'}}) is None


def test_zip_round_trip_returns_paths(manager, root):
    manager.write('project/readme.md', '# hi')
    manager.create_directory('project/empty')

    archive_path = manager.zip('project')
    destination = manager.unzip(archive_path, 'copy')

    assert archive_path == str(root / 'project.zip')
    assert destination == str(root / 'copy')
    assert manager.read('copy/readme.md') == '# hi'
    assert (root / 'copy' / 'empty').is_dir()


def test_unzip_zip_slip_returns_none(manager, root, tmp_path):
    with zipfile.ZipFile(root / 'evil.zip', 'w') as zf:
        zf.writestr('../evil.txt', 'pwned')

    assert manager.unzip('evil.zip', 'out') is None
    assert not (root / 'evil.txt').exists()
    assert not (tmp_path / 'evil.txt').exists()
    assert not (root / 'out').exists()


def test_move_and_copy_report_booleans(manager, root):
    manager.write('in/a.txt', 'a')

    assert manager.copy('in/a.txt', 'copies') is True
    assert manager.move(['in/a.txt'], 'moved') is True
    assert manager.move('in/a.txt', 'moved') is False
    assert (root / 'copies' / 'a.txt').read_text() == 'a'
    assert (root / 'moved' / 'a.txt').read_text() == 'a'


def test_file_primitives(manager):
    assert manager.write('f.txt', 'x') == 'x'
    assert manager.append('f.txt', 'y') == 'xy'
    assert manager.get_metadata('f.txt').size == 2
    assert manager.delete('f.txt') is True
    assert manager.delete('f.txt') is False
    assert manager.get_metadata('f.txt') is None


def test_storage_size(manager):
    manager.write('d/a.txt', 'x' * 2048)
    manager.write('d/b/c.txt', 'y' * 1024)

    assert manager.get_storage_size('d', 'kb') == 3.0
    assert manager.get_storage_size('missing') is None


def test_unexpected_errors_are_logged_and_swallowed(manager, monkeypatch, caplog):
    def explode(*args, **kwargs):
        raise RuntimeError('boom')

    monkeypatch.setattr(manager.ops, 'storage_size', explode)

    with caplog.at_level(logging.ERROR):
        assert manager.get_storage_size('.') is None

    assert 'failed unexpectedly' in caplog.text


def test_symlinked_entries_neither_leak_nor_break_bulk_operations(manager, root, tmp_path):
    secret = tmp_path / 'secret.txt'
    secret.write_text('TOP SECRET')
    (root / 'src' / 'real').mkdir(parents=True)
    (root / 'src' / 'real' / 'a.txt').write_text('a')
    (root / 'src' / 'leak.txt').symlink_to(secret)
    (root / 'src' / 'alias').symlink_to(root / 'src' / 'real')

    assert manager.read('src/leak.txt') is None
    assert manager.copy('src', 'dst') is True
    packed = manager.zip('src')

    assert not (root / 'dst' / 'src' / 'leak.txt').exists()
    assert (root / 'dst' / 'src' / 'real' / 'a.txt').read_text() == 'a'
    with zipfile.ZipFile(packed) as zf:
        assert zf.namelist() == ['real/a.txt']
