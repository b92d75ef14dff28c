"""Directory walk that feeds image paths into the upload pipeline."""

from __future__ import annotations

import logging
import os
from collections.abc import Generator, Iterable

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".gif", ".heif", ".orf", ".png", ".bmp", ".tiff", ".tif"}
)


def is_image(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in IMAGE_EXTENSIONS


def _log_walk_error(exc: OSError) -> None:
    logger.warning("Cannot read %s: %s", exc.filename, exc.strerror)


def iter_image_files(roots: Iterable[str]) -> Generator[str, None, None]:
    """Yield every image file under each of *roots*, in sorted order.

    Unreadable directories are logged and skipped.
    """
    for root in roots:
        if os.path.isfile(root):
            if is_image(root):
                yield root
            continue
        if not os.path.isdir(root):
            logger.warning("Not a directory, skipping: %s", root)
            continue

        logger.info("Scanning: %s", root)
        for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
            dirnames.sort()
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                if is_image(path):
                    logger.debug("... %s", path)
                    yield path
