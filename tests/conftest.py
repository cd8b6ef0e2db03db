#!/usr/bin/env python3
"""Shared fixtures for mirrorfs tests."""

import itertools
import json
import threading
import time
from collections import Counter
from unittest.mock import MagicMock

import pytest
import requests

from mirrorfs.config import StorageConfig
from mirrorfs.credentials import Credential, CredentialStore
from mirrorfs.drive_client import FOLDER_MIME_TYPE
from mirrorfs.exceptions import TransientRemoteError


class FakeDriveClient:
    """In-memory stand-in for DriveClient.

    Items live in a flat dict keyed by ID; every public call is counted in
    ``calls``. Set ``search_delay`` to widen race windows and
    ``fail_downloads`` to make downloads raise.
    """

    def __init__(self, root_id: str = 'root'):
        self.root_id = root_id
        self.items = {}
        self.calls = Counter()
        self.search_delay = 0.0
        self.fail_downloads = False
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _new_item(self, name, parent_id, mime_type, data=None):
        with self._lock:
            item_id = f"id-{next(self._ids)}"
            self.items[item_id] = {
                'id': item_id,
                'name': name,
                'mimeType': mime_type,
                'parents': [parent_id],
                'data': data,
            }
        return item_id

    @staticmethod
    def _metadata(item):
        return {k: item[k] for k in ('id', 'name', 'mimeType')}

    # Test helpers

    def add_folder(self, name, parent_id):
        return self._new_item(name, parent_id, FOLDER_MIME_TYPE)

    def add_file(self, name, parent_id, data=b'', mime_type='text/plain'):
        return self._new_item(name, parent_id, mime_type, data)

    def children(self, parent_id):
        return [item for item in self.items.values() if parent_id in item['parents']]

    def find(self, name, parent_id):
        for item in self.children(parent_id):
            if item['name'] == name:
                return item
        return None

    # DriveClient API

    def search(self, parent_id, name=None, folders=None, order_by=None):
        self.calls['search'] += 1
        if self.search_delay:
            time.sleep(self.search_delay)
        results = []
        for item in list(self.items.values()):
            if parent_id not in item['parents']:
                continue
            if name is not None and item['name'] != name:
                continue
            is_folder = item['mimeType'] == FOLDER_MIME_TYPE
            if folders is True and not is_folder:
                continue
            if folders is False and is_folder:
                continue
            results.append(self._metadata(item))
        if order_by == 'name':
            results.sort(key=lambda item: item['name'])
        return results

    def list_children(self, parent_id):
        self.calls['list_children'] += 1
        return self.search(parent_id, order_by='name')

    def create_folder(self, name, parent_id):
        self.calls['create_folder'] += 1
        return self._metadata(self.items[self.add_folder(name, parent_id)])

    def create_file(self, name, parent_id, data, mime_type='application/octet-stream'):
        self.calls['create_file'] += 1
        return self._metadata(self.items[self.add_file(name, parent_id, data, mime_type)])

    def iter_file_content(self, file_id, chunk_size=4):
        self.calls['download'] += 1
        if self.fail_downloads:
            raise TransientRemoteError("Download failed", status_code=500)
        data = self.items[file_id]['data']
        for start in range(0, len(data), chunk_size):
            yield data[start:start + chunk_size]

    def download_file(self, file_id):
        return b''.join(self.iter_file_content(file_id))

    def delete_file(self, file_id):
        self.calls['delete_file'] += 1
        if file_id not in self.items:
            raise TransientRemoteError("File not found", status_code=404)
        del self.items[file_id]

    def get_about(self):
        self.calls['get_about'] += 1
        return {
            'user': {'displayName': 'Test User', 'emailAddress': 'user@example.com'},
            'storageQuota': {'limit': '1000', 'usage': '10'},
        }


def make_response(status_code=200, payload=None, chunks=None):
    """Build a mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = json.dumps(payload) if payload is not None else ''
    response.iter_content.return_value = chunks or []
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Error", response=response)
    return response


@pytest.fixture
def fake_drive():
    return FakeDriveClient()


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / '.env'
    path.write_text(
        "GOOGLE_CLIENT_ID=client-id\n"
        "GOOGLE_CLIENT_SECRET=client-secret\n"
        "GOOGLE_ACCESS_TOKEN=old-token\n"
        "GOOGLE_REFRESH_TOKEN=refresh-token\n"
    )
    return path


@pytest.fixture
def token_session():
    """Mock session used by CredentialStore for token requests."""
    return MagicMock()


@pytest.fixture
def credential_store(env_file, token_session):
    credential = Credential(
        client_id='client-id',
        client_secret='client-secret',
        redirect_uri='http://localhost:3000/auth/google/callback',
        access_token='old-token',
        refresh_token='refresh-token',
    )
    return CredentialStore(credential, ['https://www.googleapis.com/auth/drive.file'],
                           config_file=env_file, session=token_session)


@pytest.fixture
def storage_config(tmp_path, env_file):
    return StorageConfig(
        client_id='client-id',
        client_secret='client-secret',
        base_path='/DeepRemember',
        local_fallback_path=str(tmp_path / 'mirror'),
        fs_type='google',
        max_workers=2,
        config_file=env_file,
    )
