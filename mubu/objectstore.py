"""Object storage for captured product images."""

from __future__ import annotations

import io
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import MubuConfig

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    name = _UNSAFE.sub("_", Path(filename).name).strip("._")
    return name or "image.jpg"


class ObjectStorage(ABC):
    @abstractmethod
    def upload(self, data: bytes, filename: str, mime_type: str = "image/jpeg") -> str:
        """Store *data* and return a publicly fetchable URL."""
        ...


class LocalObjectStorage(ObjectStorage):
    """Write objects into a directory that a web server exposes."""

    def __init__(
        self,
        directory: str | Path = "~/.config/mubu/objects",
        public_base_url: str = "http://localhost:5000",
    ) -> None:
        self._dir = Path(directory).expanduser()
        self._base_url = public_base_url.rstrip("/")

    def upload(self, data: bytes, filename: str, mime_type: str = "image/jpeg") -> str:
        self._dir.mkdir(parents=True, exist_ok=True)
        name = safe_filename(filename)
        (self._dir / name).write_bytes(data)
        logger.debug("Stored %d bytes as %s (%s)", len(data), name, mime_type)
        return f"{self._base_url}/objects/{name}"


class GoogleDriveObjectStorage(ObjectStorage):
    """Upload objects to Google Drive using OAuth 2.0 and share them by link.

    On first use, opens a browser for Google account authorization.
    The token is saved for subsequent use.
    """

    SCOPES = ["https://www.googleapis.com/auth/drive.file"]

    def __init__(
        self,
        credentials_path: str | Path = "~/.config/mubu/gdrive_credentials.json",
        token_path: str | Path = "~/.config/mubu/gdrive_token.json",
        folder_id: str = "",
    ) -> None:
        self._credentials_path = Path(credentials_path).expanduser()
        self._token_path = Path(token_path).expanduser()
        self._folder_id = folder_id
        self._service = None

    def _get_service(self):
        """Build and return the Drive API service, authenticating if needed."""
        if self._service is not None:
            return self._service

        try:
            from google.auth.transport.requests import Request
            from google.oauth2.credentials import Credentials
            from google_auth_oauthlib.flow import InstalledAppFlow
            from googleapiclient.discovery import build
        except ImportError:
            raise ImportError(
                "Google Drive 연동에 필요한 패키지가 설치되어 있지 않습니다:\n"
                "  pip install 'mubu[gdrive]'"
            ) from None

        creds = None

        if self._token_path.exists():
            creds = Credentials.from_authorized_user_file(
                str(self._token_path), self.SCOPES
            )

        if creds is None or not creds.valid:
            if creds and creds.expired and creds.refresh_token:
                creds.refresh(Request())
            else:
                if not self._credentials_path.exists():
                    raise FileNotFoundError(
                        f"OAuth 인증 정보 파일을 찾을 수 없습니다: "
                        f"{self._credentials_path}\n"
                        f"Google Cloud Console 에서 다운로드하세요."
                    )
                flow = InstalledAppFlow.from_client_secrets_file(
                    str(self._credentials_path), self.SCOPES
                )
                creds = flow.run_local_server(port=0)

            # Save token for next time
            self._token_path.parent.mkdir(parents=True, exist_ok=True)
            self._token_path.write_text(creds.to_json())

        self._service = build("drive", "v3", credentials=creds)
        return self._service

    def upload(self, data: bytes, filename: str, mime_type: str = "image/jpeg") -> str:
        from googleapiclient.http import MediaIoBaseUpload

        service = self._get_service()

        file_metadata: dict = {"name": safe_filename(filename)}
        if self._folder_id:
            file_metadata["parents"] = [self._folder_id]

        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=True)
        result = (
            service.files()
            .create(body=file_metadata, media_body=media, fields="id")
            .execute()
        )
        file_id = result["id"]

        service.permissions().create(
            fileId=file_id, body={"type": "anyone", "role": "reader"}
        ).execute()

        logger.info("Uploaded %s to Google Drive (%s)", filename, file_id)
        return f"https://drive.google.com/uc?id={file_id}"


def create_storage(config: MubuConfig) -> ObjectStorage:
    """Create an object storage backend based on configuration."""
    backend_name = config.storage.backend

    match backend_name:
        case "local":
            return LocalObjectStorage(
                directory=config.storage.local_dir,
                public_base_url=config.storage.public_base_url,
            )
        case "gdrive":
            return GoogleDriveObjectStorage(
                credentials_path=config.storage.gdrive_credentials_path,
                token_path=config.storage.gdrive_token_path,
                folder_id=config.storage.gdrive_folder_id,
            )
        case _:
            raise ValueError(
                f"알 수 없는 스토리지 백엔드: {backend_name!r}  "
                f"(local / gdrive 중에서 선택하세요)"
            )
