from collections.abc import Callable, Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from photo_uploader.clients.gphotos import GooglePhotosClient
from photo_uploader.dedup_store import DedupStore


@pytest.fixture()
def store(tmp_path: Path) -> Generator[DedupStore, None, None]:
    """A fresh dedup store backed by a temporary SQLite file."""
    s = DedupStore(tmp_path / "uploads.db")
    yield s
    s.close()


@pytest.fixture()
def make_file(tmp_path: Path) -> Callable[..., str]:
    """Write *content* to a file under tmp_path/photos and return its path."""
    root = tmp_path / "photos"

    def _make(name: str, content: bytes) -> str:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return str(path)

    return _make


@pytest.fixture()
def fake_client() -> MagicMock:
    """Upload client whose two remote calls always succeed."""
    client = MagicMock(spec=GooglePhotosClient)
    client.upload_bytes.return_value = "upload-token"
    client.create_media_item.return_value = {}
    return client
