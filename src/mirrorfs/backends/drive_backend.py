#!/usr/bin/env python3
"""Google Drive backend with a local mirror for synchronous operations.

Synchronous operations (``*_sync``) only touch the local mirror and then
queue a best-effort "shadow write" of the same change to Google Drive.
Shadow write failures go to the ``on_shadow_error`` sink and never reach
the synchronous caller.

Asynchronous operations run on the backend's worker pool, treat Google
Drive as authoritative and report every unrecovered failure through their
``Future``.
"""

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import wait as wait_for_futures
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Union

from ..config import StorageConfig
from ..credentials import CredentialStore
from ..drive_client import DriveClient
from ..exceptions import AuthenticationError, LocalIOError, NotFoundError, StorageError
from ..path_utils import SecurityError
from ..services.folder_resolver import FolderResolver
from ..services.local_mirror import LocalMirror
from ..services.reconciler import Reconciler
from ..streams import ReadStream
from .base import FileSystem, to_bytes

logger = logging.getLogger(__name__)

ShadowErrorSink = Callable[[str, str, BaseException], None]


def log_shadow_error(operation: str, path: str, error: BaseException) -> None:
    """Default shadow write failure sink."""
    logger.warning(f"Shadow {operation} of {path} to Google Drive failed: {error}")


class DriveStorage(FileSystem):
    """Storage facade over Google Drive and a local mirror."""

    def __init__(self, config: StorageConfig,
                 client: Optional[DriveClient] = None,
                 credentials: Optional[CredentialStore] = None,
                 on_shadow_error: Optional[ShadowErrorSink] = None,
                 **kwargs):
        """Initialize Drive storage.

        Nothing is sent to Google until the first asynchronous operation
        (or an explicit ``initialize()``).

        Args:
            config: Storage configuration
            client: Drive client (built from the credentials if None)
            credentials: Credential store (built from config if None)
            on_shadow_error: Sink for shadow write failures
            **kwargs: Worker pool options (max_workers, executor)
        """
        kwargs.setdefault('max_workers', config.max_workers)
        super().__init__(**kwargs)
        self.config = config
        self.credentials = credentials or CredentialStore.from_config(config)
        self.client = client
        self.mirror = LocalMirror(config.fallback_root)
        self.on_shadow_error = on_shadow_error or log_shadow_error

        self._resolver: Optional[FolderResolver] = None
        self._reconciler: Optional[Reconciler] = None
        self._init_lock = threading.Lock()
        self._shadow_writes: Set[Future] = set()
        self._shadow_lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._resolver is not None

    def initialize(self) -> None:
        """Validate credentials, build the client and resolve the base path.

        Idempotent; safe to call from several workers.

        Raises:
            ConfigurationError: If OAuth client credentials are missing
        """
        with self._init_lock:
            if self._resolver is not None:
                return

            self.credentials.initialize()
            if self.client is None:
                self.client = DriveClient(self.credentials, timeout=self.config.request_timeout)

            resolver = FolderResolver(self.client, self.config.root_container_id,
                                      self.config.base_path)
            resolver.ensure_base_path()

            mirror = self.mirror if self.config.fallback_to_local else None
            self._reconciler = Reconciler(self.client, resolver, mirror)
            self._resolver = resolver
            logger.info("Google Drive storage initialized")

    @property
    def resolver(self) -> FolderResolver:
        self.initialize()
        return self._resolver

    @property
    def reconciler(self) -> Reconciler:
        self.initialize()
        return self._reconciler

    def get_auth_url(self) -> str:
        return self.credentials.get_auth_url()

    def resolve_path(self, path: str) -> Path:
        """Absolute local mirror path for a logical path."""
        return self.mirror.resolve(path)

    # Shadow writes

    def _shadow(self, operation: str, path: str, func: Callable, *args) -> Future:
        future = self._submit(self._run_shadow, operation, path, func, *args)
        with self._shadow_lock:
            self._shadow_writes.add(future)
        future.add_done_callback(self._forget_shadow)
        return future

    def _run_shadow(self, operation: str, path: str, func: Callable, *args) -> None:
        # The sink runs before the future settles, so flush() covers it
        try:
            func(*args)
        except Exception as e:
            try:
                self.on_shadow_error(operation, path, e)
            except Exception:
                logger.exception(f"Shadow error sink failed for {operation} {path}")
            return
        logger.debug(f"Shadow {operation} of {path} completed")

    def _forget_shadow(self, future: Future) -> None:
        with self._shadow_lock:
            self._shadow_writes.discard(future)

    def pending_shadow_writes(self) -> int:
        with self._shadow_lock:
            return len(self._shadow_writes)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued shadow writes to settle.

        Returns:
            True if all of them settled within the timeout
        """
        with self._shadow_lock:
            pending = list(self._shadow_writes)
        if not pending:
            return True
        _, not_done = wait_for_futures(pending, timeout=timeout)
        return not not_done

    def close(self, wait: bool = True) -> None:
        if wait:
            self.flush()
        super().close(wait=wait)

    # Synchronous operations (local mirror first)

    def exists_sync(self, path: str) -> bool:
        """Check the local mirror for a path. Never raises.

        Google Drive is not consulted; use ``exists()`` for that.
        """
        if not self.config.fallback_to_local:
            logger.warning(f"exists_sync called for {path} with local fallback disabled. "
                           f"Use exists() instead.")
            return False
        try:
            return self.mirror.exists(path)
        except Exception as e:
            logger.warning(f"Could not check local mirror for {path}: {e}")
            return False

    def mkdir_sync(self, path: str) -> Path:
        """Create a directory in the local mirror and shadow it to Drive.

        Raises:
            LocalIOError: If the local directory cannot be created
        """
        local_path = self.mirror.mkdir(path)
        logger.info(f"Created local directory: {local_path}")
        self._shadow('mkdir', path, self._mkdir, path)
        return local_path

    def write_file_sync(self, path: str, data: Union[bytes, str],
                        encoding: str = 'utf-8') -> Path:
        """Write a file to the local mirror and shadow it to Drive.

        Raises:
            LocalIOError: If the local file cannot be written
        """
        payload = to_bytes(data, encoding)
        local_path = self.mirror.write_file(path, payload)
        logger.info(f"Written to local mirror: {local_path}")
        self._shadow('write', path, self._write_file, path, payload, None)
        return local_path

    # Asynchronous operations (Drive authoritative)

    def _mirror_has(self, path: str) -> bool:
        if not self.config.fallback_to_local:
            return False
        try:
            return self.mirror.exists(path)
        except SecurityError:
            return False

    def _exists(self, path: str) -> bool:
        if self._mirror_has(path):
            return True
        return self.resolver.path_to_file_id(path) is not None

    def exists(self, path: str) -> 'Future[bool]':
        return self._submit(self._exists, path)

    def _mkdir(self, path: str) -> str:
        folder_id = self.resolver.resolve_folder(path)
        logger.debug(f"Directory {path} resolved to {folder_id}")
        return folder_id

    def mkdir(self, path: str) -> 'Future[str]':
        """Create the full folder chain on Drive.

        Returns:
            Future resolving to the folder ID
        """
        return self._submit(self._mkdir, path)

    def _write_file(self, path: str, payload: bytes, mime_type: Optional[str]) -> str:
        return self.reconciler.write(path, payload, mime_type)

    def write_file(self, path: str, data: Union[bytes, str], encoding: str = 'utf-8',
                   mime_type: Optional[str] = None) -> 'Future[str]':
        """Write a file, reconciling the local mirror and Drive.

        Returns:
            Future resolving to the Drive file ID
        """
        payload = to_bytes(data, encoding)
        return self._submit(self._write_file, path, payload, mime_type)

    def _readdir(self, path: str) -> List[str]:
        folder_id = self.resolver.resolve_folder(path)
        items = self.client.list_children(folder_id)
        return sorted(item['name'] for item in items)

    def readdir(self, path: str) -> 'Future[List[str]]':
        return self._submit(self._readdir, path)

    def _unlink(self, path: str) -> None:
        file_id = self.resolver.path_to_file_id(path)
        if file_id is None:
            raise NotFoundError(f"File not found: {path}")

        self.client.delete_file(file_id)
        logger.info(f"File deleted: {path}")

        try:
            self.mirror.remove(path)
        except (LocalIOError, SecurityError) as e:
            logger.warning(f"Deleted {path} on Drive but not from local mirror: {e}")

    def unlink(self, path: str) -> 'Future[None]':
        return self._submit(self._unlink, path)

    def _pump_stream(self, path: str, stream: ReadStream) -> None:
        # Every failure goes through the stream; the caller already holds it
        try:
            file_id = self.resolver.path_to_file_id(path)
            if file_id is None:
                stream.fail(NotFoundError(f"File not found: {path}"))
                return
            for chunk in self.client.iter_file_content(file_id):
                if not stream.feed(chunk):
                    logger.debug(f"Stream for {path} closed by reader")
                    stream.stop()
                    return
        except Exception as e:
            stream.fail(e)
            return
        stream.finish()

    def create_read_stream(self, path: str) -> ReadStream:
        """Open a stream over a Drive file.

        The stream is returned at once; resolution, authentication and the
        download happen afterwards, and their errors arrive on the stream.
        """
        return self._start_stream(self._pump_stream, path)

    # Health

    def check_health(self) -> Dict[str, Any]:
        """Verify connectivity and authentication without touching files.

        Returns:
            Dict with status ('healthy'/'unhealthy'), user, storage quota,
            response time and, on failure, the error (plus auth_url for
            authentication failures)
        """
        start = time.monotonic()
        health: Dict[str, Any] = {
            'status': 'unhealthy',
            'backend': 'googledrive',
            'authenticated': False,
            'user': None,
            'storage_quota': None,
            'error': None,
        }

        try:
            self.initialize()
            about = self.client.get_about()
            health.update(
                status='healthy',
                authenticated=True,
                user=about.get('user', {}).get('emailAddress'),
                storage_quota=about.get('storageQuota'),
            )
        except (StorageError, SecurityError, ValueError) as e:
            logger.error(f"Google Drive health check failed: {e}")
            health['error'] = str(e)
            if isinstance(e, AuthenticationError):
                health['auth_url'] = e.auth_url

        health['response_time_ms'] = int((time.monotonic() - start) * 1000)
        return health
