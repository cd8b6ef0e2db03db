"""Presence-based reconciliation between the local mirror and Google Drive.

On every asynchronous write the side that already holds a copy of the file
wins; contents and timestamps are never compared:

- local has it, Drive has it: already synced, nothing is transferred
- local has it, Drive lacks it: upload the local bytes
- local lacks it, Drive has it: download into the local mirror
- neither has it (or the download failed): create on Drive from the
  caller's payload and mirror the same bytes locally
"""

import logging
import mimetypes
from typing import Optional

from ..exceptions import StorageError
from ..path_utils import normalize_path, split_segments
from .folder_resolver import FolderResolver
from .local_mirror import LocalMirror

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = 'text/plain'


def guess_mime_type(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or DEFAULT_MIME_TYPE


class Reconciler:
    """Decides between push, pull and fresh create for a single write."""

    def __init__(self, client, resolver: FolderResolver, mirror: Optional[LocalMirror]):
        """Initialize reconciler.

        Args:
            client: DriveClient
            resolver: Folder resolver sharing the facade's folder cache
            mirror: Local mirror, or None when local fallback is disabled
        """
        self.client = client
        self.resolver = resolver
        self.mirror = mirror

    def write(self, logical_path: str, payload: bytes,
              mime_type: Optional[str] = None) -> str:
        """Reconcile one file write.

        Args:
            logical_path: Caller's path (also the local mirror key)
            payload: Bytes supplied by the caller
            mime_type: Upload MIME type (guessed from the name if None)

        Returns:
            Drive file ID

        Raises:
            ValueError: If the path has no file name
        """
        segments = split_segments(normalize_path(logical_path))
        if not segments:
            raise ValueError(f"Cannot write to an empty path: {logical_path!r}")

        file_name = segments[-1]
        parent_id = self.resolver.resolve_segments(segments[:-1])
        mime_type = mime_type or guess_mime_type(file_name)

        if self.mirror is not None and self.mirror.is_file(logical_path):
            return self._sync_local_copy(logical_path, file_name, parent_id, mime_type)

        file_id = self._pull_remote_copy(logical_path, file_name, parent_id)
        if file_id is not None:
            return file_id

        return self._create_fresh(logical_path, file_name, parent_id, payload, mime_type)

    def _sync_local_copy(self, logical_path: str, file_name: str,
                         parent_id: str, mime_type: str) -> str:
        existing_id = self.resolver.find_file(file_name, parent_id)
        if existing_id is not None:
            logger.debug(f"{logical_path} present locally and on Drive, nothing to transfer")
            return existing_id

        logger.info(f"Repairing Drive copy of {logical_path} from local mirror")
        data = self.mirror.read_bytes(logical_path)
        return self.client.create_file(file_name, parent_id, data, mime_type)['id']

    def _pull_remote_copy(self, logical_path: str, file_name: str,
                          parent_id: str) -> Optional[str]:
        existing_id = self.resolver.find_file(file_name, parent_id)
        if existing_id is None:
            return None

        if self.mirror is None:
            return existing_id

        try:
            data = self.client.download_file(existing_id)
        except StorageError as e:
            logger.warning(f"Could not pull {logical_path} from Drive, creating new copy: {e}")
            return None

        logger.info(f"Repairing local mirror copy of {logical_path} from Drive")
        self.mirror.write_file(logical_path, data)
        return existing_id

    def _create_fresh(self, logical_path: str, file_name: str, parent_id: str,
                      payload: bytes, mime_type: str) -> str:
        file_id = self.client.create_file(file_name, parent_id, payload, mime_type)['id']
        if self.mirror is not None:
            self.mirror.write_file(logical_path, payload)
        logger.info(f"File written: {logical_path}")
        return file_id
