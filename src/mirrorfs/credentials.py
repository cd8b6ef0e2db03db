#!/usr/bin/env python3
"""OAuth2 credential lifecycle for Google Drive."""

import logging
import re
import secrets
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, Any
from urllib.parse import urlencode

import certifi
import requests
from dotenv import set_key

from .config import StorageConfig, discover_config_file, ENV_KEYS
from .exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)


def sanitize_for_log(text: str) -> str:
    """Remove sensitive data from log output.

    Args:
        text: Text to sanitize

    Returns:
        Sanitized text with sensitive data redacted
    """
    text = re.sub(r'(access_token|refresh_token|client_secret|code)["\']?\s*[:=]\s*["\']?[\w\-\.\/]+',
                  r'\1=***REDACTED***', text, flags=re.IGNORECASE)
    text = re.sub(r'Bearer\s+[\w\-\.]+', 'Bearer ***REDACTED***', text, flags=re.IGNORECASE)
    return text


class CredentialState(Enum):
    UNINITIALIZED = 'uninitialized'
    INITIALIZED = 'initialized'
    REFRESHING = 'refreshing'
    FAILED = 'failed'


@dataclass
class Credential:
    """OAuth2 client configuration plus the current token pair."""
    client_id: str
    client_secret: str
    redirect_uri: str
    access_token: str = ''
    refresh_token: str = ''
    expires_at: float = 0.0


class CredentialStore:
    """Holds OAuth2 credentials and refreshes/persists them.

    One store is owned by each storage facade and shared by reference with
    its Drive client. Tokens are mutated in place on refresh and written back
    to the discovered config file.
    """

    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(self, credential: Credential, scopes: List[str],
                 config_file: Optional[Path] = None,
                 session: Optional[requests.Session] = None,
                 timeout: int = 30):
        """Initialize credential store.

        Args:
            credential: Client configuration and tokens
            scopes: OAuth scopes requested in authorization URLs
            config_file: File that receives refreshed tokens (discovered if None)
            session: HTTP session for token requests
            timeout: Token request timeout in seconds
        """
        self.credential = credential
        self.scopes = list(scopes)
        self.config_file = config_file
        self.timeout = timeout
        self.state = CredentialState.UNINITIALIZED
        self.oauth_state: Optional[str] = None  # For CSRF protection
        self._session = session or requests.Session()
        self._session.verify = certifi.where()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: StorageConfig, **kwargs) -> 'CredentialStore':
        credential = Credential(
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri,
            access_token=config.access_token,
            refresh_token=config.refresh_token,
        )
        return cls(credential, config.scopes, config_file=config.config_file,
                   timeout=config.request_timeout, **kwargs)

    @property
    def access_token(self) -> str:
        return self.credential.access_token

    def initialize(self) -> None:
        """Move from UNINITIALIZED to INITIALIZED.

        Raises:
            ConfigurationError: If the OAuth client id or secret is missing
        """
        if self.state != CredentialState.UNINITIALIZED:
            return
        if not self.credential.client_id or not self.credential.client_secret:
            raise ConfigurationError(
                "Google OAuth credentials (client_id, client_secret) are required"
            )
        if not self.credential.refresh_token:
            logger.warning("No refresh token configured; expired access tokens cannot be renewed")
        self.state = CredentialState.INITIALIZED

    def get_auth_url(self) -> str:
        """Get OAuth2 authorization URL with CSRF protection.

        Returns:
            Authorization URL requesting offline access with a consent prompt
        """
        self.oauth_state = secrets.token_urlsafe(32)

        params = {
            'client_id': self.credential.client_id,
            'redirect_uri': self.credential.redirect_uri,
            'response_type': 'code',
            'scope': ' '.join(self.scopes),
            'access_type': 'offline',
            'prompt': 'consent',
            'state': self.oauth_state,
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    def validate_state(self, received_state: Optional[str]) -> bool:
        """Validate OAuth state parameter for CSRF protection.

        Args:
            received_state: State parameter received from OAuth callback

        Returns:
            True if state is valid, False otherwise
        """
        if not self.oauth_state:
            logger.error("No state was generated - possible attack")
            return False

        is_valid = secrets.compare_digest(self.oauth_state, received_state or '')
        if not is_valid:
            logger.error("State validation failed - possible CSRF attack")

        # One-time use
        self.oauth_state = None
        return is_valid

    def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        response = self._session.post(self.TOKEN_URL, data=data, timeout=self.timeout)
        logger.debug(f"Token endpoint response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"Token request failed with status {response.status_code}")
            logger.error(f"Response: {sanitize_for_log(response.text)}")

        response.raise_for_status()
        return response.json()

    def _apply_tokens(self, token_data: Dict[str, Any]) -> None:
        self.credential.access_token = token_data['access_token']
        # Google omits the refresh token on refresh; keep the old one
        if token_data.get('refresh_token'):
            self.credential.refresh_token = token_data['refresh_token']
        self.credential.expires_at = time.time() + token_data.get('expires_in', 3600)

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for tokens and persist them.

        Args:
            code: Authorization code from the OAuth callback

        Returns:
            Token data

        Raises:
            AuthenticationError: If the exchange fails
        """
        data = {
            'client_id': self.credential.client_id,
            'client_secret': self.credential.client_secret,
            'code': code,
            'redirect_uri': self.credential.redirect_uri,
            'grant_type': 'authorization_code',
        }

        logger.info("Exchanging authorization code for access token")
        try:
            token_data = self._token_request(data)
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            logger.error(f"Token exchange failed: {sanitize_for_log(str(e))}")
            raise AuthenticationError("Authorization code exchange failed", self.get_auth_url())

        with self._lock:
            self._apply_tokens(token_data)
            self.state = CredentialState.INITIALIZED
            self.persist()
        logger.info("Successfully obtained access token")
        return token_data

    def refresh(self) -> Dict[str, Any]:
        """Exchange the refresh token for a new access token.

        On success the new tokens are stored in memory and persisted. On
        failure the store moves to FAILED.

        Returns:
            New token data

        Raises:
            AuthenticationError: With a fresh authorization URL if refresh fails
        """
        self.state = CredentialState.REFRESHING

        if not self.credential.refresh_token:
            self.state = CredentialState.FAILED
            logger.error("No refresh token available")
            raise AuthenticationError("No refresh token available", self.get_auth_url())

        logger.info("Refreshing access token")
        data = {
            'client_id': self.credential.client_id,
            'client_secret': self.credential.client_secret,
            'refresh_token': self.credential.refresh_token,
            'grant_type': 'refresh_token',
        }

        try:
            token_data = self._token_request(data)
            self._apply_tokens(token_data)
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            self.state = CredentialState.FAILED
            logger.error(f"Token refresh failed: {sanitize_for_log(str(e))}")
            raise AuthenticationError("Google Drive token refresh failed", self.get_auth_url())

        self.state = CredentialState.INITIALIZED
        logger.info("Successfully refreshed access token")
        self.persist()
        return token_data

    def refresh_after_failure(self, failed_token: str) -> None:
        """Refresh once on behalf of a call rejected with ``failed_token``.

        Refreshes are serialized; if another caller already replaced the
        rejected token, the new one is reused without refreshing again.
        """
        with self._lock:
            if (self.state == CredentialState.INITIALIZED
                    and self.credential.access_token
                    and self.credential.access_token != failed_token):
                logger.debug("Access token already refreshed by another request")
                return
            self.refresh()

    def persist(self) -> Optional[Path]:
        """Write the current tokens back to the config file.

        Existing ``GOOGLE_ACCESS_TOKEN``/``GOOGLE_REFRESH_TOKEN`` lines are
        replaced, missing ones appended. Not safe against concurrent writers
        in other processes.

        Returns:
            Path written, or None if no config file was found
        """
        path = self.config_file or discover_config_file()
        if path is None:
            logger.warning("No config file found; refreshed tokens kept in memory only")
            return None

        try:
            set_key(str(path), ENV_KEYS['access_token'], self.credential.access_token,
                    quote_mode='never')
            if self.credential.refresh_token:
                set_key(str(path), ENV_KEYS['refresh_token'], self.credential.refresh_token,
                        quote_mode='never')
        except OSError as e:
            logger.error(f"Could not persist tokens to {path}: {e}")
            return None

        logger.info(f"Persisted refreshed tokens to {path}")
        return path
