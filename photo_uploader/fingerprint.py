"""Content fingerprints used as the dedup key.

Only the first ``FINGERPRINT_SIZE`` bytes are hashed, so two files that share
that prefix get the same fingerprint no matter what follows.
"""

from __future__ import annotations

import hashlib
import logging
from typing import BinaryIO

from photo_uploader.exceptions import ReadError

logger = logging.getLogger(__name__)

FINGERPRINT_SIZE = 8192


def fingerprint(source: BinaryIO) -> str:
    """Return the SHA-256 hex digest of the first bytes of *source*.

    The source is rewound to offset 0 afterwards so the same handle can be
    streamed to the upload endpoint.
    """
    try:
        source.seek(0)
        prefix = source.read(FINGERPRINT_SIZE)
        source.seek(0)
    except OSError as exc:
        raise ReadError(f"Error reading file: {exc}") from exc
    return hashlib.sha256(prefix).hexdigest()


def fingerprint_file(path: str) -> str:
    try:
        with open(path, "rb") as fh:
            return fingerprint(fh)
    except OSError as exc:
        raise ReadError(f"Error opening file: {exc}") from exc
