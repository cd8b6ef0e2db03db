"""Resolution of logical paths into Google Drive folder IDs.

Folder lookups are memoized per (parent ID, folder name) for the lifetime of
the resolver; folders are assumed never to be renamed or deleted behind our
back. File lookups are never cached since files change far more often.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..path_utils import normalize_path, split_segments

logger = logging.getLogger(__name__)


class FolderResolver:
    """Walks logical paths through the Drive folder hierarchy."""

    def __init__(self, client, root_id: str, base_path: str = '/'):
        """Initialize folder resolver.

        Args:
            client: DriveClient (or anything with its search/create_folder API)
            root_id: Container ID the base path is resolved from
            base_path: Logical root under which all paths are resolved
        """
        self.client = client
        self.root_id = root_id
        self.base_path = base_path
        self.base_id: Optional[str] = None
        self._folder_cache: Dict[Tuple[str, str], str] = {}
        # One lock per (parent, name) so concurrent misses create one folder
        self._key_locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def cache_size(self) -> int:
        return len(self._folder_cache)

    def cached_folder_id(self, name: str, parent_id: str) -> Optional[str]:
        return self._folder_cache.get((parent_id, name))

    def _lock_for(self, key: Tuple[str, str]) -> threading.Lock:
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def ensure_base_path(self) -> str:
        """Resolve (creating as needed) the base path below the root container.

        Returns:
            Base folder ID
        """
        if self.base_id is None:
            parent_id = self.root_id
            for segment in split_segments(self.base_path):
                parent_id = self.find_or_create_folder(segment, parent_id)
            self.base_id = parent_id
            logger.info(f"Base path {self.base_path} resolved to {self.base_id}")
        return self.base_id

    def find_or_create_folder(self, name: str, parent_id: str) -> str:
        """Find a folder by name under a parent, creating it if missing.

        Args:
            name: Folder name
            parent_id: Parent folder ID

        Returns:
            Folder ID (from cache when known)
        """
        key = (parent_id, name)
        folder_id = self._folder_cache.get(key)
        if folder_id is not None:
            return folder_id

        with self._lock_for(key):
            # Another request may have populated it while we waited
            folder_id = self._folder_cache.get(key)
            if folder_id is not None:
                return folder_id

            matches = self.client.search(parent_id, name=name, folders=True)
            if matches:
                folder_id = matches[0]['id']
                logger.debug(f"Found folder {name} under {parent_id}: {folder_id}")
            else:
                folder_id = self.client.create_folder(name, parent_id)['id']

            self._folder_cache[key] = folder_id
            return folder_id

    def resolve_segments(self, segments: List[str]) -> str:
        """Resolve already-split folder segments below the base folder."""
        parent_id = self.ensure_base_path()
        for segment in segments:
            parent_id = self.find_or_create_folder(segment, parent_id)
        return parent_id

    def resolve_folder(self, logical_path: str) -> str:
        """Resolve a logical folder path to a folder ID, creating missing folders.

        Args:
            logical_path: Folder path relative to the base path

        Returns:
            Folder ID; the base folder ID for "", "." or "/"
        """
        return self.resolve_segments(split_segments(normalize_path(logical_path)))

    def find_file(self, name: str, parent_id: str) -> Optional[str]:
        """Find a (non-folder) file by name under a parent. Never cached.

        Returns:
            File ID of the first match, or None
        """
        matches = self.client.search(parent_id, name=name, folders=False)
        return matches[0]['id'] if matches else None

    def path_to_file_id(self, logical_path: str) -> Optional[str]:
        """Convert a logical file path to a Drive file ID.

        Parent folders are resolved (and created) on the way.

        Returns:
            File ID, or None if the file does not exist or the path is empty
        """
        segments = split_segments(normalize_path(logical_path))
        if not segments:
            return None

        parent_id = self.resolve_segments(segments[:-1])
        return self.find_file(segments[-1], parent_id)
