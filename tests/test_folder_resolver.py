#!/usr/bin/env python3
"""Tests for logical path to folder ID resolution."""

import threading
from unittest.mock import patch

from mirrorfs.drive_client import FOLDER_MIME_TYPE
from mirrorfs.services.folder_resolver import FolderResolver


def _folders(fake, name):
    return [item for item in fake.items.values()
            if item['name'] == name and item['mimeType'] == FOLDER_MIME_TYPE]


def test_find_or_create_folder_twice_creates_once(fake_drive):
    """Test repeated lookups hit the cache after one create."""
    resolver = FolderResolver(fake_drive, 'root', '/')

    first = resolver.find_or_create_folder('docs', 'root')
    second = resolver.find_or_create_folder('docs', 'root')

    assert first == second
    assert fake_drive.calls['create_folder'] == 1
    assert fake_drive.calls['search'] == 1
    assert resolver.cached_folder_id('docs', 'root') == first


def test_find_existing_folder(fake_drive):
    """Test an existing folder is reused, not recreated."""
    existing = fake_drive.add_folder('docs', 'root')
    resolver = FolderResolver(fake_drive, 'root', '/')

    assert resolver.find_or_create_folder('docs', 'root') == existing
    assert fake_drive.calls['create_folder'] == 0


def test_file_with_same_name_is_not_a_folder(fake_drive):
    """Test a file does not satisfy a folder lookup."""
    fake_drive.add_file('docs', 'root', b'x')
    resolver = FolderResolver(fake_drive, 'root', '/')

    folder_id = resolver.find_or_create_folder('docs', 'root')

    assert fake_drive.items[folder_id]['mimeType'] == FOLDER_MIME_TYPE


def test_resolve_folder_chains_segments(fake_drive):
    """Test a/b/c issues one find-or-create per segment, parent to child."""
    resolver = FolderResolver(fake_drive, 'root', '/')

    with patch.object(resolver, 'find_or_create_folder',
                      wraps=resolver.find_or_create_folder) as spy:
        folder_id = resolver.resolve_folder('a/b/c')

    assert spy.call_count == 3
    names = [call.args[0] for call in spy.call_args_list]
    assert names == ['a', 'b', 'c']
    a_id = resolver.cached_folder_id('a', 'root')
    b_id = resolver.cached_folder_id('b', a_id)
    assert spy.call_args_list[1].args[1] == a_id
    assert spy.call_args_list[2].args[1] == b_id
    assert fake_drive.items[folder_id]['parents'] == [b_id]


def test_base_path_is_resolved_once(fake_drive):
    """Test paths resolve below the base folder."""
    resolver = FolderResolver(fake_drive, 'root', '/DeepRemember/data')

    folder_id = resolver.resolve_folder('files')
    base_id = resolver.base_id

    data = fake_drive.items[base_id]
    assert data['name'] == 'data'
    assert fake_drive.items[folder_id]['parents'] == [base_id]

    resolver.resolve_folder('voice')
    assert len(_folders(fake_drive, 'DeepRemember')) == 1
    assert len(_folders(fake_drive, 'data')) == 1


def test_root_paths_resolve_to_base(fake_drive):
    """Test empty, '.' and '/' name the base folder."""
    resolver = FolderResolver(fake_drive, 'root', '/App')
    base_id = resolver.ensure_base_path()

    assert resolver.resolve_folder('') == base_id
    assert resolver.resolve_folder('.') == base_id
    assert resolver.resolve_folder('/') == base_id


def test_base_path_root(fake_drive):
    """Test a base path of '/' uses the root container directly."""
    resolver = FolderResolver(fake_drive, 'root', '/')
    assert resolver.ensure_base_path() == 'root'
    assert fake_drive.calls['search'] == 0


def test_path_to_file_id(fake_drive):
    """Test file lookup through normalized paths."""
    resolver = FolderResolver(fake_drive, 'root', '/')
    notes_id = resolver.resolve_folder('notes')
    file_id = fake_drive.add_file('todo.txt', notes_id, b'buy milk')

    assert resolver.path_to_file_id('notes/todo.txt') == file_id
    assert resolver.path_to_file_id('\\notes\\todo.txt') == file_id
    assert resolver.path_to_file_id('notes/missing.txt') is None
    assert resolver.path_to_file_id('') is None


def test_file_lookups_are_not_cached(fake_drive):
    """Test file lookups always query Drive."""
    resolver = FolderResolver(fake_drive, 'root', '/')
    resolver.path_to_file_id('a.txt')
    before = fake_drive.calls['search']

    resolver.path_to_file_id('a.txt')

    assert fake_drive.calls['search'] == before + 1


def test_concurrent_misses_create_one_folder(fake_drive):
    """Test concurrent lookups of one missing folder create it once."""
    fake_drive.search_delay = 0.02
    resolver = FolderResolver(fake_drive, 'root', '/')
    results = []

    def lookup():
        results.append(resolver.find_or_create_folder('shared', 'root'))

    threads = [threading.Thread(target=lookup) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(set(results)) == 1
    assert len(_folders(fake_drive, 'shared')) == 1
