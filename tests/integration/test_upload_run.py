"""Scanner → pipeline → SQLite runs with the Photos service mocked out."""

from pathlib import Path
from unittest.mock import MagicMock

import requests

from photo_uploader.clients.gphotos import GooglePhotosClient
from photo_uploader.dedup_store import DedupStore
from photo_uploader.fingerprint import fingerprint_file
from photo_uploader.pipeline import UploadPipeline
from photo_uploader.scanner import iter_image_files


def _photos_session() -> MagicMock:
    """Session that accepts every upload and every batchCreate."""
    session = MagicMock(spec=requests.Session)

    def post(url, **kwargs):
        resp = MagicMock(spec=requests.Response)
        resp.status_code = 200
        if url.endswith("/uploads"):
            resp.text = f"token-for-{kwargs['headers']['X-Goog-Upload-File-Name']}"
            resp.json.side_effect = ValueError
        else:
            resp.text = "{}"
            resp.json.return_value = {
                "newMediaItemResults": [{"status": {"message": "Success"}}]
            }
        return resp

    session.post.side_effect = post
    return session


class TestEndToEnd:
    def test_identical_prefix_files_upload_once(self, tmp_path: Path) -> None:
        photos = tmp_path / "photos"
        photos.mkdir()
        (photos / "a.jpg").write_bytes(b"X" * 9000)
        (photos / "b.jpg").write_bytes(b"X" * 9000)
        (photos / "notes.txt").write_text("not an image")
        session = _photos_session()

        with DedupStore(tmp_path / "uploads.db") as store:
            pipeline = UploadPipeline(store, GooglePhotosClient(session), workers=1)
            result = pipeline.run(iter_image_files([str(photos)]))

            assert store.count() == 1
            record = store.get(fingerprint_file(str(photos / "a.jpg")))
            assert record is not None
            assert record.filename == "a.jpg"

        assert result.recorded == [str(photos / "a.jpg")]
        assert result.skipped == [str(photos / "b.jpg")]
        assert result.failed == []
        # one raw upload + one batchCreate, all for a.jpg
        assert session.post.call_count == 2

    def test_non_image_is_never_queued(self, tmp_path: Path) -> None:
        photos = tmp_path / "photos"
        photos.mkdir()
        (photos / "notes.txt").write_text("hello")
        (photos / "c.png").write_bytes(b"png")
        session = _photos_session()

        with DedupStore(tmp_path / "uploads.db") as store:
            result = UploadPipeline(store, GooglePhotosClient(session), workers=2).run(
                iter_image_files([str(photos)])
            )

        processed = result.recorded + result.skipped + result.failed
        assert processed == [str(photos / "c.png")]
        sent = [c.kwargs["headers"]["X-Goog-Upload-File-Name"] for c in session.post.call_args_list if "headers" in c.kwargs]
        assert sent == ["c.png"]

    def test_rerun_registers_nothing_new(self, tmp_path: Path) -> None:
        photos = tmp_path / "photos"
        for i in range(6):
            path = photos / f"set{i % 2}" / f"{i}.jpg"
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(f"image number {i}".encode() * 100)
        db = tmp_path / "uploads.db"

        with DedupStore(db) as store:
            first = UploadPipeline(store, GooglePhotosClient(_photos_session()), workers=4).run(
                iter_image_files([str(photos)])
            )

        second_session = _photos_session()
        with DedupStore(db) as store:
            second = UploadPipeline(store, GooglePhotosClient(second_session), workers=4).run(
                iter_image_files([str(photos)])
            )
            assert store.count() == 6

        assert len(first.recorded) == 6
        assert second.recorded == []
        assert len(second.skipped) == 6
        second_session.post.assert_not_called()

    def test_registration_failure_is_retried_next_run(self, tmp_path: Path) -> None:
        photos = tmp_path / "photos"
        photos.mkdir()
        (photos / "a.jpg").write_bytes(b"abc")
        db = tmp_path / "uploads.db"

        failing = MagicMock(spec=requests.Session)
        upload_ok = MagicMock(spec=requests.Response, status_code=200, text="tok")
        create_bad = MagicMock(spec=requests.Response, status_code=500, text="backend error")
        failing.post.side_effect = [upload_ok, create_bad]

        with DedupStore(db) as store:
            first = UploadPipeline(store, GooglePhotosClient(failing), workers=1).run(
                iter_image_files([str(photos)])
            )
            assert store.count() == 0

        with DedupStore(db) as store:
            second = UploadPipeline(store, GooglePhotosClient(_photos_session()), workers=1).run(
                iter_image_files([str(photos)])
            )
            assert store.count() == 1

        assert first.failed == [str(photos / "a.jpg")]
        assert second.recorded == [str(photos / "a.jpg")]
