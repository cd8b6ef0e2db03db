#!/usr/bin/env python3
"""Configuration for mirrorfs.

Configuration Sources
=====================

Options are read from the process environment layered over a ``.env`` file
discovered by probing a short list of candidates (the working directory and
two of its ancestors). The same file receives refreshed OAuth tokens, see
``CredentialStore.persist``.

    GOOGLE_CLIENT_ID=...
    GOOGLE_CLIENT_SECRET=...
    GOOGLE_REDIRECT_URI=http://localhost:3000/auth/google/callback
    GOOGLE_ACCESS_TOKEN=...
    GOOGLE_REFRESH_TOKEN=...
    GOOGLE_DRIVE_ROOT_FOLDER_ID=root
    GOOGLE_DRIVE_BASE_PATH=/DeepRemember
    FS_TYPE=google

Every recognized option is a field of ``StorageConfig`` with its default,
and every value passes through the validators in ``validators.py``.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import dotenv_values

from .exceptions import ConfigurationError
from .validators import validate_config_value, ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILE = ".env"

DEFAULT_SCOPES = [
    'https://www.googleapis.com/auth/drive.file',
    'https://www.googleapis.com/auth/drive.metadata.readonly',
]

# Field name -> environment key
ENV_KEYS = {
    'client_id': 'GOOGLE_CLIENT_ID',
    'client_secret': 'GOOGLE_CLIENT_SECRET',
    'redirect_uri': 'GOOGLE_REDIRECT_URI',
    'access_token': 'GOOGLE_ACCESS_TOKEN',
    'refresh_token': 'GOOGLE_REFRESH_TOKEN',
    'root_container_id': 'GOOGLE_DRIVE_ROOT_FOLDER_ID',
    'base_path': 'GOOGLE_DRIVE_BASE_PATH',
    'scopes': 'GOOGLE_DRIVE_SCOPES',
    'fallback_to_local': 'FS_FALLBACK_TO_LOCAL',
    'local_fallback_path': 'FS_LOCAL_FALLBACK_PATH',
    'fs_type': 'FS_TYPE',
    'fs_root_dir': 'FS_ROOT_DIR',
    'request_timeout': 'MIRRORFS_REQUEST_TIMEOUT',
    'max_workers': 'MIRRORFS_MAX_WORKERS',
    'log_level': 'MIRRORFS_LOG_LEVEL',
}


def config_file_candidates(start: Optional[Path] = None) -> List[Path]:
    """Candidate config file locations, in probing order."""
    start = start or Path.cwd()
    return [
        start / CONFIG_FILE,
        start.parent / CONFIG_FILE,
        start.parent.parent / CONFIG_FILE,
    ]


def discover_config_file(start: Optional[Path] = None) -> Optional[Path]:
    """Find the first existing config file among the candidates.

    Args:
        start: Directory to start probing from (default: working directory)

    Returns:
        Path of the config file, or None if no candidate exists
    """
    for candidate in config_file_candidates(start):
        if candidate.is_file():
            logger.debug(f"Using config file {candidate}")
            return candidate
    return None


@dataclass
class StorageConfig:
    """Typed storage configuration with every recognized option defaulted."""

    # OAuth 2.0 client and tokens
    client_id: str = ''
    client_secret: str = ''
    redirect_uri: str = 'http://localhost:3000/auth/google/callback'
    access_token: str = ''
    refresh_token: str = ''

    # Drive layout
    root_container_id: str = 'root'
    base_path: str = '/DeepRemember'
    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))

    # Local mirror
    fallback_to_local: bool = True
    local_fallback_path: str = './fallback-storage'

    # Backend selection (see factory.py)
    fs_type: str = 'node'
    fs_root_dir: str = ''

    request_timeout: int = 60
    max_workers: int = 4
    log_level: str = 'INFO'

    # Where tokens are written back; discovered when not given
    config_file: Optional[Path] = None

    def __post_init__(self):
        for f in fields(self):
            if f.name == 'config_file':
                continue
            try:
                value = validate_config_value(f.name, getattr(self, f.name))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid value for {f.name}: {e}")
            setattr(self, f.name, value)

    @property
    def fallback_root(self) -> Path:
        """Absolute local mirror root."""
        return Path(self.local_fallback_path).expanduser().resolve()

    def validate_credentials(self) -> None:
        """Check the OAuth client credentials are present.

        Raises:
            ConfigurationError: If client id or client secret is missing
        """
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "Google OAuth credentials (client_id, client_secret) are required"
            )

    def with_overrides(self, **overrides: Any) -> 'StorageConfig':
        """Return a copy with the given fields replaced (and re-validated)."""
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 **overrides: Any) -> 'StorageConfig':
        """Build configuration from a .env file and the process environment.

        Process environment values win over file values; explicit keyword
        overrides win over both.

        Args:
            env_file: Config file to read (default: discovered)
            environ: Environment mapping (default: os.environ)
            **overrides: Field values that take precedence

        Returns:
            Validated configuration
        """
        env_file = env_file or discover_config_file()
        environ = os.environ if environ is None else environ

        merged: Dict[str, Any] = {}
        if env_file and env_file.is_file():
            merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        merged.update(environ)

        values: Dict[str, Any] = {}
        for name, key in ENV_KEYS.items():
            if merged.get(key) not in (None, ''):
                values[name] = merged[key]

        # Drive base path follows FS_ROOT_DIR unless set explicitly
        if 'base_path' not in values and values.get('fs_root_dir', '').strip('/'):
            values['base_path'] = '/' + values['fs_root_dir'].strip('/')

        values.update(overrides)
        values.setdefault('config_file', env_file)
        return cls(**values)
