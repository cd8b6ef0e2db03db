#!/usr/bin/env python3
"""Command-line utility for mirrorfs."""

import argparse
import http.server
import json
import socketserver
import sys
import webbrowser
from pathlib import Path
from urllib.parse import urlparse, parse_qs

from mirrorfs.backends.drive_backend import DriveStorage
from mirrorfs.config import ENV_KEYS, StorageConfig
from mirrorfs.credentials import CredentialStore
from mirrorfs.exceptions import ConfigurationError, StorageError
from mirrorfs.factory import create_file_system
from mirrorfs.logging_config import get_logger, setup_logging

logger = get_logger(__name__)

# Shown as "(set)" by `config --list`
SECRET_FIELDS = ('client_secret', 'access_token', 'refresh_token')


class AuthCallbackHandler(http.server.BaseHTTPRequestHandler):
    """HTTP handler for OAuth callback."""

    callback_path = '/'
    auth_code = None
    state = None

    def do_GET(self):
        """Handle GET request for OAuth callback."""
        parsed = urlparse(self.path)
        if parsed.path != AuthCallbackHandler.callback_path:
            self.send_response(404)
            self.end_headers()
            return

        params = parse_qs(parsed.query)
        if 'code' in params:
            AuthCallbackHandler.auth_code = params['code'][0]
            AuthCallbackHandler.state = params.get('state', [None])[0]
            self.send_response(200)
            self.send_header('Content-type', 'text/html')
            self.end_headers()
            self.wfile.write(b"<html><body><h1>Authentication successful!</h1>"
                             b"<p>You can close this window now.</p></body></html>")
        else:
            self.send_response(400)
            self.send_header('Content-type', 'text/html')
            self.end_headers()
            self.wfile.write(b"<html><body><h1>Authentication failed!</h1></body></html>")

    def log_message(self, format, *args):
        """Suppress log messages."""
        pass


def _load_config(args) -> StorageConfig:
    env_file = Path(args.env_file) if args.env_file else None
    return StorageConfig.from_env(env_file=env_file)


def _wait_for_callback(redirect_uri: str):
    """Receive one OAuth callback on the redirect URI's local port.

    Returns:
        (code, state), or (None, None) if nothing usable arrived
    """
    parsed = urlparse(redirect_uri)
    AuthCallbackHandler.callback_path = parsed.path or '/'
    AuthCallbackHandler.auth_code = None
    AuthCallbackHandler.state = None

    with socketserver.TCPServer(("", parsed.port or 80), AuthCallbackHandler) as httpd:
        httpd.handle_request()
    return AuthCallbackHandler.auth_code, AuthCallbackHandler.state


def cmd_auth(args):
    """Authorize mirrorfs with Google Drive and store the tokens."""
    try:
        config = _load_config(args)
        config.validate_credentials()
    except ConfigurationError as e:
        print(f"✗ {e}")
        print(f"Set {ENV_KEYS['client_id']} and {ENV_KEYS['client_secret']} in your .env file.")
        return 1

    store = CredentialStore.from_config(config)
    auth_url = store.get_auth_url()

    print(f"Visit this URL to authorize Google Drive access:\n\n{auth_url}\n")
    if not args.no_browser:
        webbrowser.open(auth_url)

    host = urlparse(config.redirect_uri).hostname
    if args.code:
        code, state = args.code, None
    elif host in ('localhost', '127.0.0.1'):
        print(f"Waiting for authorization on {config.redirect_uri} ...")
        try:
            code, state = _wait_for_callback(config.redirect_uri)
        except OSError as e:
            print(f"✗ Could not listen on {config.redirect_uri}: {e}")
            print("Re-run with --code and paste the code from the redirect URL.")
            return 1
        if not store.validate_state(state):
            print("✗ OAuth state mismatch, authorization rejected")
            return 1
    else:
        code, state = input("Paste the authorization code: ").strip(), None

    if not code:
        print("✗ No authorization code received")
        return 1

    try:
        store.exchange_code(code)
    except StorageError as e:
        print(f"✗ Authentication failed: {e}")
        return 1

    if not store.credential.refresh_token:
        print("⚠ No refresh token returned; revoke the app's access and authorize again.")
    target = store.config_file or 'memory only (no .env file found)'
    print(f"✓ Authentication successful! Tokens saved to {target}")
    return 0


def cmd_health(args):
    """Check Google Drive connectivity and authentication."""
    try:
        config = _load_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    storage = DriveStorage(config)
    try:
        health = storage.check_health()
    finally:
        storage.close()
    logger.debug(f"Health report: {health}")

    if args.json:
        print(json.dumps(health, indent=2))
    else:
        print("Google Drive Health")
        print("=" * 40)
        print(f"Status: {health['status']}")
        print(f"User: {health['user'] or '-'}")
        print(f"Response time: {health['response_time_ms']} ms")
        if health['error']:
            print(f"Error: {health['error']}")

    return 0 if health['status'] == 'healthy' else 1


def cmd_ls(args):
    """List a directory of the configured file system."""
    try:
        fs = create_file_system(args.type, _load_config(args))
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    try:
        names = fs.readdir(args.path).result()
    except (StorageError, OSError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        fs.close()

    for name in names:
        print(name)
    return 0


def cmd_config(args):
    """Show the effective configuration."""
    try:
        config = _load_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    print("Current Configuration:")
    print("=" * 40)
    print(f"config_file = {config.config_file or '(not found)'}")
    for name, key in ENV_KEYS.items():
        value = getattr(config, name)
        if name in SECRET_FIELDS:
            value = '(set)' if value else '(not set)'
        elif isinstance(value, list):
            value = ' '.join(value)
        print(f"{name} = {value}    [{key}]")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='mirrorfs - Google Drive storage with a local mirror'
    )
    parser.add_argument('--env-file', help='Config file to use instead of the discovered .env')
    parser.add_argument('--log-level', help='Log level (default: MIRRORFS_LOG_LEVEL or INFO)')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    auth_parser = subparsers.add_parser('auth', help='Authorize Google Drive access')
    auth_parser.add_argument('--code', help='Authorization code copied from the redirect URL')
    auth_parser.add_argument('--no-browser', action='store_true', help='Do not open a browser')
    auth_parser.set_defaults(func=cmd_auth)

    health_parser = subparsers.add_parser('health', help='Check Google Drive connectivity')
    health_parser.add_argument('--json', action='store_true', help='Print the raw health report')
    health_parser.set_defaults(func=cmd_health)

    ls_parser = subparsers.add_parser('ls', help='List a directory')
    ls_parser.add_argument('path', nargs='?', default='', help='Logical directory path')
    ls_parser.add_argument('--type', help='File system type (default: FS_TYPE)')
    ls_parser.set_defaults(func=cmd_ls)

    config_parser = subparsers.add_parser('config', help='Show configuration')
    config_parser.add_argument('--list', action='store_true', help='List configuration')
    config_parser.set_defaults(func=cmd_config)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.log_level)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
