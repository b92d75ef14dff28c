"""OAuth 2.0 for the Photos Library API, with the token cached between runs."""

from __future__ import annotations

import logging
import os

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import AuthorizedSession, Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from photo_uploader.exceptions import AuthError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/photoslibrary.appendonly"]


def load_credentials(credentials_file: str, token_file: str) -> Credentials:
    """Return valid credentials, reusing and refreshing the cached token.

    Falls back to the browser consent flow when there is no usable token.
    """
    token_file = os.path.expanduser(token_file)
    creds = None
    if os.path.exists(token_file):
        try:
            creds = Credentials.from_authorized_user_file(token_file, SCOPES)
        except ValueError:
            logger.warning("Ignoring unreadable token file %s", token_file)

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            logger.warning("Token refresh failed (%s), re-authorizing.", exc)
            creds = None

    if not creds or not creds.valid:
        if not os.path.exists(credentials_file):
            raise AuthError(
                f"{credentials_file} not found. Download an OAuth client (Desktop app) "
                "from Google Cloud Console → APIs & Services → Credentials."
            )
        try:
            flow = InstalledAppFlow.from_client_secrets_file(credentials_file, SCOPES)
            creds = flow.run_local_server(port=0)
        except (GoogleAuthError, ValueError) as exc:
            raise AuthError(f"Error getting token: {exc}") from exc

    _save_token(creds, token_file)
    return creds


def _save_token(creds: Credentials, token_file: str) -> None:
    fd = os.open(token_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as token:
        token.write(creds.to_json())
    logger.debug("Saved OAuth token to %s", token_file)


def authorized_session(creds: Credentials) -> AuthorizedSession:
    """Session that signs every request and refreshes the token on its own."""
    return AuthorizedSession(creds)
