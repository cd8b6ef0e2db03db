#!/usr/bin/env python3
"""Google Drive v3 API client for mirrorfs."""

import json
import logging
import secrets
from functools import wraps
from typing import Optional, List, Dict, Any, Callable, Iterator

import requests
import certifi

from .credentials import CredentialStore, CredentialState, sanitize_for_log
from .exceptions import AuthenticationError, TransientRemoteError


logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'

# Error texts Google uses when the token itself is the problem
_AUTH_ERROR_MARKERS = (
    'invalid_grant',
    'invalid_token',
    'invalid credentials',
    'unauthorized',
    'login required',
)


def retry_on_auth_failure(func: Callable) -> Callable:
    """Decorator to refresh credentials and retry once on authentication failure.

    Only AuthenticationError triggers the refresh; every other error
    propagates immediately. If the refresh fails, or the retried call is
    rejected again, an AuthenticationError carrying a re-authorization URL
    is raised.
    """
    @wraps(func)
    def wrapper(self: 'DriveClient', *args, **kwargs):
        failed_token = self.credentials.access_token
        try:
            return func(self, *args, **kwargs)
        except AuthenticationError as e:
            logger.warning(f"{func.__name__} rejected by Google Drive, refreshing token: {e}")

        self.credentials.refresh_after_failure(failed_token)

        try:
            return func(self, *args, **kwargs)
        except AuthenticationError as e:
            self.credentials.state = CredentialState.FAILED
            logger.error(f"{func.__name__} still rejected after token refresh: {e}")
            raise AuthenticationError(
                "Google Drive rejected refreshed credentials",
                self.credentials.get_auth_url(),
            ) from e
    return wrapper


def escape_query_value(value: str) -> str:
    """Escape a string literal for use inside a Drive search query."""
    return value.replace('\\', '\\\\').replace("'", "\\'")


def is_auth_failure(response: requests.Response) -> bool:
    """Check whether a Drive response signals bad or expired credentials.

    Args:
        response: HTTP response

    Returns:
        True for HTTP 401, an UNAUTHENTICATED status field, or a
        credential-related error message
    """
    if response.status_code == 401:
        return True
    if response.status_code < 400:
        return False

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get('error')
        if isinstance(error, dict):
            if error.get('status') == 'UNAUTHENTICATED':
                return True
            message = str(error.get('message', ''))
        else:
            message = f"{error or ''} {payload.get('error_description', '')}"
    else:
        message = response.text or ''

    message = message.lower()
    return any(marker in message for marker in _AUTH_ERROR_MARKERS)


def _error_message(response: requests.Response) -> str:
    try:
        error = response.json().get('error')
    except (ValueError, AttributeError):
        return sanitize_for_log(response.text[:200])
    if isinstance(error, dict):
        return error.get('message', '')
    return str(error)


class DriveClient:
    """Client for the Google Drive v3 REST API.

    Every request goes through ``_api_request``, which refreshes the shared
    CredentialStore and retries exactly once when Google rejects the token.
    """

    API_BASE = "https://www.googleapis.com/drive/v3"
    UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"
    ITEM_FIELDS = "id, name, mimeType"

    def __init__(self, credentials: CredentialStore,
                 session: Optional[requests.Session] = None,
                 timeout: int = 60):
        """Initialize Drive client.

        Args:
            credentials: Credential store shared with the owning facade
            session: HTTP session (a new one is created if not given)
            timeout: Request timeout in seconds
        """
        self.credentials = credentials
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.verify = certifi.where()  # Explicit certificate validation

    @retry_on_auth_failure
    def _api_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Make an authenticated API request.

        Args:
            method: HTTP method
            url: Full request URL
            **kwargs: Additional request arguments

        Returns:
            Response object

        Raises:
            AuthenticationError: If Google rejects the access token
            TransientRemoteError: For any other failure
        """
        headers = dict(kwargs.pop('headers', {}))
        headers['Authorization'] = f"Bearer {self.credentials.access_token}"
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self._session.request(method, url, headers=headers, **kwargs)
        except requests.exceptions.RequestException as e:
            raise TransientRemoteError(f"{method} {url} failed: {sanitize_for_log(str(e))}") from e

        if is_auth_failure(response):
            raise AuthenticationError(f"HTTP {response.status_code}: {_error_message(response)}")

        if response.status_code >= 400:
            message = _error_message(response)
            logger.debug(f"{method} {url} -> {response.status_code}: {message}")
            raise TransientRemoteError(
                f"Google Drive request failed with status {response.status_code}: {message}",
                status_code=response.status_code,
            )
        return response

    def get_about(self) -> Dict[str, Any]:
        """Get account information and storage quota.

        Used as a lightweight connectivity/authentication probe.
        """
        response = self._api_request(
            'GET', f"{self.API_BASE}/about",
            params={'fields': 'user(displayName, emailAddress), storageQuota'},
        )
        return response.json()

    def search(self, parent_id: str, name: Optional[str] = None,
               folders: Optional[bool] = None,
               order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        """List non-trashed items under a folder with pagination support.

        Args:
            parent_id: Parent folder ID
            name: Only items with exactly this name
            folders: True for folders only, False for non-folders only,
                None for both
            order_by: Drive orderBy clause (e.g. "name")

        Returns:
            List of item metadata (id, name, mimeType)
        """
        clauses = [f"'{escape_query_value(parent_id)}' in parents", "trashed = false"]
        if name is not None:
            clauses.append(f"name = '{escape_query_value(name)}'")
        if folders is True:
            clauses.append(f"mimeType = '{FOLDER_MIME_TYPE}'")
        elif folders is False:
            clauses.append(f"mimeType != '{FOLDER_MIME_TYPE}'")

        params = {
            'q': ' and '.join(clauses),
            'fields': f"nextPageToken, files({self.ITEM_FIELDS})",
            'pageSize': 1000,
        }
        if order_by:
            params['orderBy'] = order_by

        all_items = []
        while True:
            response = self._api_request('GET', f"{self.API_BASE}/files", params=dict(params))
            data = response.json()
            all_items.extend(data.get('files', []))

            page_token = data.get('nextPageToken')
            if not page_token:
                break
            params['pageToken'] = page_token
            logger.debug(f"Following pagination, fetched {len(all_items)} items so far")

        return all_items

    def list_children(self, parent_id: str) -> List[Dict[str, Any]]:
        """List all non-trashed children of a folder, ordered by name."""
        return self.search(parent_id, order_by='name')

    def create_folder(self, name: str, parent_id: str) -> Dict[str, Any]:
        """Create a folder.

        Args:
            name: Folder name
            parent_id: Parent folder ID

        Returns:
            Folder metadata including ID
        """
        body = {
            'name': name,
            'mimeType': FOLDER_MIME_TYPE,
            'parents': [parent_id],
        }
        response = self._api_request('POST', f"{self.API_BASE}/files",
                                     params={'fields': self.ITEM_FIELDS}, json=body)
        metadata = response.json()
        logger.info(f"Created folder: {name} ({metadata.get('id')})")
        return metadata

    def create_file(self, name: str, parent_id: str, data: bytes,
                    mime_type: str = 'application/octet-stream') -> Dict[str, Any]:
        """Create a file with content using a multipart upload.

        Args:
            name: File name
            parent_id: Parent folder ID
            data: File content
            mime_type: Content MIME type

        Returns:
            File metadata including ID
        """
        boundary = secrets.token_hex(16)
        metadata = json.dumps({'name': name, 'parents': [parent_id]})
        body = (
            f"--{boundary}\r\n"
            f"Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{metadata}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {mime_type}\r\n\r\n"
        ).encode('utf-8') + data + f"\r\n--{boundary}--\r\n".encode('utf-8')

        headers = {'Content-Type': f"multipart/related; boundary={boundary}"}
        response = self._api_request(
            'POST', f"{self.UPLOAD_BASE}/files",
            params={'uploadType': 'multipart', 'fields': self.ITEM_FIELDS},
            data=body, headers=headers,
        )
        result = response.json()
        logger.info(f"Uploaded: {name} ({len(data)} bytes) -> {result.get('id')}")
        return result

    def open_download(self, file_id: str) -> requests.Response:
        """Start a streaming download of a file's content.

        The caller must consume or close the returned response.
        """
        return self._api_request('GET', f"{self.API_BASE}/files/{file_id}",
                                 params={'alt': 'media'}, stream=True)

    def iter_file_content(self, file_id: str, chunk_size: int = 65536) -> Iterator[bytes]:
        """Yield a file's content in chunks."""
        response = self.open_download(file_id)
        try:
            for chunk in response.iter_content(chunk_size=chunk_size):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as e:
            raise TransientRemoteError(f"Download of {file_id} interrupted: {e}") from e
        finally:
            response.close()

    def download_file(self, file_id: str) -> bytes:
        """Download a file's full content.

        Args:
            file_id: Drive file ID

        Returns:
            File content
        """
        content = b''.join(self.iter_file_content(file_id))
        logger.info(f"Downloaded: {file_id} ({len(content)} bytes)")
        return content

    def delete_file(self, file_id: str) -> None:
        """Delete a file from Google Drive.

        Args:
            file_id: Drive file ID
        """
        self._api_request('DELETE', f"{self.API_BASE}/files/{file_id}")
        logger.info(f"Deleted file: {file_id}")
