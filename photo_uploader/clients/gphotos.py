"""Google Photos client – pushes file bytes and registers them as library items."""

from __future__ import annotations

import logging
import os
from typing import BinaryIO

import requests

from photo_uploader.exceptions import ReadError, RemoteCallError

logger = logging.getLogger(__name__)

# Google Photos API endpoints
PHOTOS_UPLOAD_URL = "https://photoslibrary.googleapis.com/v1/uploads"
PHOTOS_BATCH_CREATE_URL = "https://photoslibrary.googleapis.com/v1/mediaItems:batchCreate"


def _is_success(resp: requests.Response) -> bool:
    return resp.status_code // 100 == 2


class GooglePhotosClient:
    """Two-phase upload against the Photos Library API.

    *session* must already sign its requests (an ``AuthorizedSession``); the
    same session is shared by every worker thread. The client never retries;
    the session may resend a request after refreshing an expired token, so
    request bodies are always replayable bytes.
    """

    def __init__(
        self,
        session: requests.Session,
        upload_url: str = PHOTOS_UPLOAD_URL,
        batch_create_url: str = PHOTOS_BATCH_CREATE_URL,
        timeout: float | None = None,
    ):
        self._session = session
        self._upload_url = upload_url
        self._batch_create_url = batch_create_url
        self._timeout = timeout

    def upload_bytes(self, source: BinaryIO, filename: str) -> str:
        """Send the full content of *source* and return the upload token."""
        try:
            source.seek(0)
            data = source.read()
        except OSError as exc:
            raise ReadError(f"Error reading file: {exc}") from exc
        try:
            resp = self._session.post(
                self._upload_url,
                headers={
                    "Content-type": "application/octet-stream",
                    "X-Goog-Upload-File-Name": os.path.basename(filename),
                    "X-Goog-Upload-Protocol": "raw",
                },
                data=data,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise RemoteCallError(f"Error uploading image: {exc}") from exc

        if not _is_success(resp):
            raise RemoteCallError(
                f"Bad status uploading bytes (HTTP {resp.status_code}): {resp.text[:120]}",
                status_code=resp.status_code,
            )
        return resp.text

    def create_media_item(self, upload_token: str) -> dict:
        """Turn an upload token into a visible library item.

        If this fails the bytes stay on the server as an orphaned upload;
        nothing tries to remove them.
        """
        body = {
            "newMediaItems": [
                {
                    "description": "",
                    "simpleMediaItem": {"uploadToken": upload_token},
                }
            ]
        }
        try:
            resp = self._session.post(
                self._batch_create_url,
                json=body,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise RemoteCallError(f"Error adding media item: {exc}") from exc

        if not _is_success(resp):
            raise RemoteCallError(
                f"Bad status adding media item (HTTP {resp.status_code}): {resp.text[:120]}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError:
            payload = {}

        results = payload.get("newMediaItemResults", []) if isinstance(payload, dict) else []
        if results:
            # gRPC status: code 0 = OK
            status = results[0].get("status", {})
            if status.get("code", 0) != 0:
                raise RemoteCallError(
                    f"Failed to create media item: {status.get('message', status)}",
                    status_code=resp.status_code,
                )
            return results[0]
        return {}

    def upload_file(self, source: BinaryIO, filename: str) -> dict:
        """Upload the bytes, then register them. Both must succeed."""
        upload_token = self.upload_bytes(source, filename)
        logger.debug("Got upload token for %s", filename)
        return self.create_media_item(upload_token)
