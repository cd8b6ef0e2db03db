#!/usr/bin/env python3
"""Tests for the Google Drive API client."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from mirrorfs.credentials import CredentialState, CredentialStore
from mirrorfs.drive_client import (
    FOLDER_MIME_TYPE,
    DriveClient,
    escape_query_value,
    is_auth_failure,
)
from mirrorfs.exceptions import AuthenticationError, TransientRemoteError

from conftest import make_response


@pytest.fixture
def api_session():
    return MagicMock()


@pytest.fixture
def client(credential_store, api_session):
    credential_store.initialize()
    return DriveClient(credential_store, session=api_session, timeout=5)


def _auth_header(call):
    return call.kwargs['headers']['Authorization']


def test_escape_query_value():
    """Test quotes and backslashes are escaped in search queries."""
    assert escape_query_value("it's") == "it\\'s"
    assert escape_query_value('a\\b') == 'a\\\\b'


def test_is_auth_failure():
    """Test recognition of credential failures."""
    assert is_auth_failure(make_response(401, {'error': {'message': 'x'}}))
    assert is_auth_failure(make_response(403, {'error': {'status': 'UNAUTHENTICATED'}}))
    assert is_auth_failure(make_response(400, {'error': 'invalid_grant'}))
    assert is_auth_failure(make_response(403, {'error': {'message': 'Invalid Credentials'}}))
    assert not is_auth_failure(make_response(404, {'error': {'message': 'File not found'}}))
    assert not is_auth_failure(make_response(200, {}))


def test_request_sends_bearer_token(client, api_session):
    """Test requests carry the current access token and timeout."""
    api_session.request.return_value = make_response(200, {'user': {}})

    client.get_about()

    call = api_session.request.call_args
    assert _auth_header(call) == 'Bearer old-token'
    assert call.kwargs['timeout'] == 5


def test_401_refreshes_and_retries_once(client, api_session, token_session, env_file):
    """Test a rejected token is refreshed and the call retried exactly once."""
    api_session.request.side_effect = [
        make_response(401, {'error': {'message': 'Invalid Credentials'}}),
        make_response(200, {'user': {'emailAddress': 'user@example.com'}}),
    ]
    token_session.post.return_value = make_response(200, {'access_token': 'new-token'})

    about = client.get_about()

    assert about['user']['emailAddress'] == 'user@example.com'
    assert api_session.request.call_count == 2
    assert token_session.post.call_count == 1
    first, second = api_session.request.call_args_list
    assert _auth_header(first) == 'Bearer old-token'
    assert _auth_header(second) == 'Bearer new-token'
    assert 'GOOGLE_ACCESS_TOKEN=new-token' in env_file.read_text()


def test_401_with_failed_refresh_does_not_retry(client, api_session, token_session):
    """Test a failed refresh raises with a re-authorization URL and no retry."""
    api_session.request.return_value = make_response(401, {'error': {'message': 'expired'}})
    token_session.post.return_value = make_response(400, {'error': 'invalid_grant'})

    with pytest.raises(AuthenticationError) as exc_info:
        client.get_about()

    assert exc_info.value.auth_url.startswith(CredentialStore.AUTH_URL)
    assert api_session.request.call_count == 1
    assert client.credentials.state == CredentialState.FAILED


def test_rejected_after_refresh(client, api_session, token_session):
    """Test a retry rejected again is not retried further."""
    api_session.request.return_value = make_response(401, {'error': {'message': 'nope'}})
    token_session.post.return_value = make_response(200, {'access_token': 'new-token'})

    with pytest.raises(AuthenticationError) as exc_info:
        client.get_about()

    assert exc_info.value.auth_url is not None
    assert api_session.request.call_count == 2
    assert token_session.post.call_count == 1
    assert client.credentials.state == CredentialState.FAILED


def test_non_auth_error_not_retried(client, api_session, token_session):
    """Test other HTTP failures propagate without refresh."""
    api_session.request.return_value = make_response(500, {'error': {'message': 'Backend Error'}})

    with pytest.raises(TransientRemoteError) as exc_info:
        client.get_about()

    assert exc_info.value.status_code == 500
    assert api_session.request.call_count == 1
    token_session.post.assert_not_called()


def test_network_error_is_transient(client, api_session):
    """Test connection failures become TransientRemoteError."""
    api_session.request.side_effect = requests.exceptions.ConnectionError("down")

    with pytest.raises(TransientRemoteError):
        client.get_about()


def test_search_builds_query_and_paginates(client, api_session):
    """Test search filters and follows nextPageToken."""
    api_session.request.side_effect = [
        make_response(200, {'files': [{'id': '1', 'name': 'docs'}], 'nextPageToken': 'p2'}),
        make_response(200, {'files': [{'id': '2', 'name': 'docs'}]}),
    ]

    items = client.search('parent-id', name="docs", folders=True)

    assert [item['id'] for item in items] == ['1', '2']
    first, second = api_session.request.call_args_list
    query = first.kwargs['params']['q']
    assert "'parent-id' in parents" in query
    assert "trashed = false" in query
    assert "name = 'docs'" in query
    assert f"mimeType = '{FOLDER_MIME_TYPE}'" in query
    assert 'pageToken' not in first.kwargs['params']
    assert second.kwargs['params']['pageToken'] == 'p2'


def test_search_files_only(client, api_session):
    """Test folders=False excludes folders."""
    api_session.request.return_value = make_response(200, {'files': []})

    client.search('p', name='a.txt', folders=False)

    query = api_session.request.call_args.kwargs['params']['q']
    assert f"mimeType != '{FOLDER_MIME_TYPE}'" in query


def test_list_children_orders_by_name(client, api_session):
    """Test directory listings ask Drive to order by name."""
    api_session.request.return_value = make_response(200, {'files': []})

    client.list_children('p')

    params = api_session.request.call_args.kwargs['params']
    assert params['orderBy'] == 'name'
    assert 'name =' not in params['q']


def test_create_folder(client, api_session):
    """Test folder creation body."""
    api_session.request.return_value = make_response(200, {'id': 'f1', 'name': 'docs'})

    result = client.create_folder('docs', 'parent-id')

    assert result['id'] == 'f1'
    body = api_session.request.call_args.kwargs['json']
    assert body == {'name': 'docs', 'mimeType': FOLDER_MIME_TYPE, 'parents': ['parent-id']}


def test_create_file_multipart(client, api_session):
    """Test file upload sends metadata and content as multipart."""
    api_session.request.return_value = make_response(200, {'id': 'file-1'})

    client.create_file('todo.txt', 'parent-id', b'buy milk', 'text/plain')

    call = api_session.request.call_args
    assert call.kwargs['params']['uploadType'] == 'multipart'
    assert call.kwargs['headers']['Content-Type'].startswith('multipart/related; boundary=')
    body = call.kwargs['data']
    assert b'buy milk' in body
    assert json.dumps({'name': 'todo.txt', 'parents': ['parent-id']}).encode() in body


def test_download_file(client, api_session):
    """Test downloads are streamed and joined."""
    response = make_response(200, chunks=[b'buy ', b'', b'milk'])
    api_session.request.return_value = response

    assert client.download_file('file-1') == b'buy milk'
    assert api_session.request.call_args.kwargs['params'] == {'alt': 'media'}
    response.close.assert_called_once()


def test_delete_file(client, api_session):
    """Test delete uses the file ID."""
    api_session.request.return_value = make_response(204)

    client.delete_file('file-1')

    call = api_session.request.call_args
    assert call.args[0] == 'DELETE'
    assert call.args[1].endswith('/files/file-1')
