"""Tests for product image storage backends."""

from unittest.mock import MagicMock, patch

import pytest

from mubu.config import load_config
from mubu.objectstore import (
    GoogleDriveObjectStorage,
    LocalObjectStorage,
    create_storage,
    safe_filename,
)


def _mock_googleapiclient():
    """Context manager that mocks googleapiclient.http.MediaIoBaseUpload."""
    mock_http = MagicMock()
    mock_api = MagicMock()
    mock_api.http = mock_http
    return patch.dict("sys.modules", {
        "googleapiclient": mock_api,
        "googleapiclient.http": mock_http,
    })


@pytest.mark.parametrize(
    "name, expected",
    [
        ("product_1.jpg", "product_1.jpg"),
        ("../../etc/passwd", "passwd"),
        ("연고 1.jpg", "1.jpg"),
        ("a b.png", "a_b.png"),
        ("...", "image.jpg"),
    ],
)
def test_safe_filename(name, expected):
    assert safe_filename(name) == expected


class TestLocalObjectStorage:
    def test_upload(self, tmp_path):
        storage = LocalObjectStorage(tmp_path / "objects", "https://cdn.example/")
        url = storage.upload(b"jpeg-bytes", "product_1.jpg")
        assert url == "https://cdn.example/objects/product_1.jpg"
        assert (tmp_path / "objects" / "product_1.jpg").read_bytes() == b"jpeg-bytes"

    def test_upload_stays_inside_directory(self, tmp_path):
        storage = LocalObjectStorage(tmp_path / "objects")
        storage.upload(b"x", "../escape.jpg")
        assert (tmp_path / "objects" / "escape.jpg").exists()
        assert not (tmp_path / "escape.jpg").exists()


class TestGoogleDriveObjectStorage:
    def test_init_defaults(self):
        storage = GoogleDriveObjectStorage()
        assert "gdrive_credentials.json" in str(storage._credentials_path)
        assert "gdrive_token.json" in str(storage._token_path)
        assert storage._folder_id == ""

    def test_upload_shares_by_link(self):
        storage = GoogleDriveObjectStorage(folder_id="folder123")

        mock_service = MagicMock()
        mock_files = MagicMock()
        mock_files.create.return_value.execute.return_value = {"id": "file_abc123"}
        mock_service.files.return_value = mock_files
        storage._service = mock_service

        with _mock_googleapiclient():
            url = storage.upload(b"jpeg", "product_1.jpg")

        assert url == "https://drive.google.com/uc?id=file_abc123"
        body = mock_files.create.call_args.kwargs["body"]
        assert body == {"name": "product_1.jpg", "parents": ["folder123"]}
        perm = mock_service.permissions.return_value.create.call_args.kwargs
        assert perm["fileId"] == "file_abc123"
        assert perm["body"] == {"type": "anyone", "role": "reader"}

    def test_upload_no_folder(self):
        storage = GoogleDriveObjectStorage()
        mock_service = MagicMock()
        mock_service.files.return_value.create.return_value.execute.return_value = {"id": "f"}
        storage._service = mock_service

        with _mock_googleapiclient():
            storage.upload(b"jpeg", "p.jpg")

        body = mock_service.files.return_value.create.call_args.kwargs["body"]
        assert "parents" not in body

    def test_get_service_no_credentials_file(self, tmp_path):
        """Raises FileNotFoundError when credentials file missing."""
        storage = GoogleDriveObjectStorage(
            credentials_path=str(tmp_path / "nonexistent.json"),
            token_path=str(tmp_path / "token.json"),
        )

        with patch.dict("sys.modules", {
            "google": MagicMock(),
            "google.auth": MagicMock(),
            "google.auth.transport": MagicMock(),
            "google.auth.transport.requests": MagicMock(),
            "google.oauth2": MagicMock(),
            "google.oauth2.credentials": MagicMock(),
            "google_auth_oauthlib": MagicMock(),
            "google_auth_oauthlib.flow": MagicMock(),
            "googleapiclient": MagicMock(),
            "googleapiclient.discovery": MagicMock(),
        }):
            with pytest.raises(FileNotFoundError, match="OAuth"):
                storage._get_service()


class TestCreateStorage:
    def test_local(self):
        assert isinstance(create_storage(load_config()), LocalObjectStorage)

    def test_gdrive(self):
        config = load_config()
        config.storage.backend = "gdrive"
        assert isinstance(create_storage(config), GoogleDriveObjectStorage)

    def test_unknown(self):
        config = load_config()
        config.storage.backend = "s3"
        with pytest.raises(ValueError, match="스토리지 백엔드"):
            create_storage(config)
