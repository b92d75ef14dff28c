import logging
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from photo_uploader import cli
from photo_uploader.config import UploaderConfig
from photo_uploader.dedup_store import DedupStore
from photo_uploader.exceptions import AuthError, RemoteCallError
from photo_uploader.fingerprint import fingerprint_file


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep log files, the database and the SIGINT handler out of the real environment."""
    monkeypatch.setenv("UPLOADER_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("UPLOADER_DB", str(tmp_path / "uploads.db"))
    monkeypatch.setenv("UPLOADER_TOKEN_FILE", str(tmp_path / "token.json"))
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    with patch("photo_uploader.config.load_dotenv"), patch("photo_uploader.cli.signal.signal"):
        yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)


def _photos_dir(tmp_path: Path) -> Path:
    photos = tmp_path / "photos"
    photos.mkdir()
    (photos / "a.jpg").write_bytes(b"first image")
    (photos / "b.jpg").write_bytes(b"second image")
    (photos / "notes.txt").write_text("skip me")
    return photos


class TestParser:
    def test_defaults_come_from_config(self) -> None:
        parser = cli._build_parser(UploaderConfig(workers=7, db_path="/tmp/x.db"))

        args = parser.parse_args(["photos"])

        assert args.workers == 7
        assert args.db == "/tmp/x.db"
        assert args.dirs == ["photos"]
        assert args.dry_run is False

    def test_worker_flag(self) -> None:
        args = cli._build_parser(UploaderConfig()).parse_args(["-c", "2", "a", "b"])

        assert args.workers == 2
        assert args.dirs == ["a", "b"]

    def test_requires_a_directory(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser(UploaderConfig()).parse_args([])


class TestMain:
    def test_dry_run_needs_no_credentials(self, tmp_path: Path) -> None:
        photos = _photos_dir(tmp_path)

        with patch("photo_uploader.cli.load_credentials") as load:
            code = cli.main(["--dry-run", "--no-color", str(photos)])

        assert code == 0
        load.assert_not_called()
        with DedupStore(tmp_path / "uploads.db") as store:
            assert store.count() == 0

    def test_upload_run_records_files(self, tmp_path: Path) -> None:
        photos = _photos_dir(tmp_path)
        client = MagicMock()
        client.upload_bytes.return_value = "tok"
        client.create_media_item.return_value = {}

        with (
            patch("photo_uploader.cli.load_credentials"),
            patch("photo_uploader.cli.authorized_session"),
            patch("photo_uploader.cli.GooglePhotosClient", return_value=client),
        ):
            code = cli.main(["-c", "2", "--no-color", str(photos)])

        assert code == 0
        assert client.upload_bytes.call_count == 2
        with DedupStore(tmp_path / "uploads.db") as store:
            assert store.exists(fingerprint_file(str(photos / "a.jpg")))
            assert store.exists(fingerprint_file(str(photos / "b.jpg")))

    def test_failed_file_gives_exit_code_1(self, tmp_path: Path) -> None:
        photos = _photos_dir(tmp_path)
        client = MagicMock()
        client.upload_bytes.side_effect = RemoteCallError("HTTP 503", status_code=503)

        with (
            patch("photo_uploader.cli.load_credentials"),
            patch("photo_uploader.cli.authorized_session"),
            patch("photo_uploader.cli.GooglePhotosClient", return_value=client),
        ):
            code = cli.main(["--no-color", str(photos)])

        assert code == 1

    def test_auth_failure_exits_1(self, tmp_path: Path) -> None:
        photos = _photos_dir(tmp_path)

        with patch("photo_uploader.cli.load_credentials", side_effect=AuthError("no secrets")):
            code = cli.main(["--no-color", str(photos)])

        assert code == 1

    def test_invalid_worker_count_exits_1(self, tmp_path: Path) -> None:
        photos = _photos_dir(tmp_path)

        assert cli.main(["-c", "0", "--no-color", str(photos)]) == 1
