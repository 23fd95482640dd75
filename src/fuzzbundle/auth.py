"""API access tokens for the fuzzbundle server.

This module stores access tokens per server in a small JSON file and
checks them against the server's HTTP API.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

import requests

from .cli_utils import ErrorFormatter
from .errors import APIError

logger = logging.getLogger(__name__)

DEFAULT_SERVER = "https://app.fuzzbundle.dev"
SERVER_ENV = "FUZZBUNDLE_SERVER"
TOKEN_ENV = "FUZZBUNDLE_API_ACCESS_TOKEN"
TOKEN_FILE_ENV = "FUZZBUNDLE_TOKEN_FILE"


def default_server() -> str:
    return os.environ.get(SERVER_ENV) or DEFAULT_SERVER


def _normalize_server(server: str) -> str:
    return server.rstrip("/")


class TokenStorage:
    """Access tokens keyed by server URL, kept in a JSON file."""

    def __init__(self, path: Optional[Path] = None):
        if path is None:
            env_path = os.environ.get(TOKEN_FILE_ENV)
            if env_path:
                path = Path(env_path)
            else:
                path = Path.home() / ".config" / "fuzzbundle" / "access_tokens.json"
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read token file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, server: str) -> str:
        """Get the token for a server, or "" if none is stored."""
        return self._load().get(_normalize_server(server), "")

    def put(self, server: str, token: str) -> None:
        tokens = self._load()
        tokens[_normalize_server(server)] = token
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(tokens, indent=2), encoding="utf-8")
        try:
            self.path.chmod(0o600)
        except OSError:
            # Not supported on every filesystem
            pass


def get_token(server: str, storage: Optional[TokenStorage] = None) -> str:
    """Get the API access token, preferring the environment over the token file."""
    token = os.environ.get(TOKEN_ENV)
    if token:
        return token
    return (storage or TokenStorage()).get(server)


class APIClient:
    """Minimal client for the server's HTTP API."""

    TIMEOUT = 10

    def __init__(self, server: str, session: Optional[requests.Session] = None):
        self.server = _normalize_server(server)
        self.session = session or requests.Session()

    def check_valid_token(self, token: str) -> None:
        """
        Verify that the server accepts a token.

        Raises:
            APIError: If the token is rejected or the server is unreachable
        """
        url = f"{self.server}/v1/me"
        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.TIMEOUT,
            )
        except requests.RequestException as e:
            raise APIError(f"Failed to connect to {self.server}: {e}") from e

        if response.status_code in (401, 403):
            raise APIError("Invalid API access token", status_code=response.status_code)
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise APIError(f"API request failed: {e}", status_code=response.status_code) from e


def get_auth_status(
    server: str,
    storage: Optional[TokenStorage] = None,
    client: Optional[APIClient] = None,
) -> bool:
    """
    Check whether the user is authenticated with a server.

    Returns:
        False if no token is configured, True if the token is valid

    Raises:
        APIError: If a configured token is rejected
    """
    storage = storage or TokenStorage()
    token = get_token(server, storage)
    if not token:
        return False

    client = client or APIClient(server)
    try:
        client.check_valid_token(token)
    except APIError:
        ErrorFormatter.print_warning(
            "Failed to authenticate with the configured API access token.\n"
            "It's possible that the token has been revoked. Please try again after\n"
            f"removing the token from {storage.path}."
        )
        raise
    return True


def check_and_store_token(
    server: str,
    token: str,
    storage: Optional[TokenStorage] = None,
    client: Optional[APIClient] = None,
) -> None:
    """Validate a token and save it for the server."""
    token = token.strip()
    if not token:
        raise APIError("No API access token given")
    (client or APIClient(server)).check_valid_token(token)
    storage = storage or TokenStorage()
    storage.put(server, token)
    logger.info(f"Stored API access token for {server} in {storage.path}")
