"""
Document storage backends

- LocalFileStorage: files under UPLOAD_DIR (development, single server)
- R2Storage: Cloudflare R2 through the S3 API (production)

Both encrypt at rest with Fernet when DOCUMENT_ENCRYPTION_KEY is set.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from cryptography.fernet import Fernet, InvalidToken

from ..config import (
    DOCUMENT_ENCRYPTION_KEY,
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_SECRET_ACCESS_KEY,
    STORAGE_BACKEND,
    UPLOAD_DIR,
)

logger = logging.getLogger(__name__)

PRESIGNED_URL_EXPIRATION = 900  # 15 minutes


class StorageError(Exception):
    """Storage backend failure"""


class StorageFileNotFound(StorageError):
    """No object stored under the key"""


class BaseStorage(ABC):
    def __init__(self, encryption_key: Optional[str] = None):
        self.fernet = Fernet(encryption_key.encode()) if encryption_key else None

    @property
    def encrypted(self) -> bool:
        return self.fernet is not None

    def _encrypt(self, data: bytes) -> bytes:
        return self.fernet.encrypt(data) if self.fernet else data

    def _decrypt(self, data: bytes) -> bytes:
        if not self.fernet:
            return data
        try:
            return self.fernet.decrypt(data)
        except InvalidToken as e:
            raise StorageError("Stored file could not be decrypted") from e

    @abstractmethod
    def save(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        ...

    @abstractmethod
    def load(self, key: str) -> bytes:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    def get_url(self, key: str, expires_in: int = PRESIGNED_URL_EXPIRATION) -> Optional[str]:
        """Direct download URL, or None when files must be streamed through the API"""
        return None


class LocalFileStorage(BaseStorage):
    def __init__(self, root: str, encryption_key: Optional[str] = None):
        super().__init__(encryption_key)
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            logger.warning(f"🚫 Rejected storage key outside upload dir: {key}")
            raise StorageError("Invalid storage key")
        return path

    def save(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self._encrypt(data))
        logger.info(f"✅ Stored {len(data)} bytes at {key}")

    def load(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StorageFileNotFound(key)
        return self._decrypt(path.read_bytes())

    def delete(self, key: str) -> None:
        path = self._path(key)
        if not path.is_file():
            raise StorageFileNotFound(key)
        path.unlink()

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()


class R2Storage(BaseStorage):
    def __init__(self, encryption_key: Optional[str] = None):
        super().__init__(encryption_key)
        self.bucket = R2_BUCKET_NAME
        self.client = boto3.client(
            "s3",
            endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
            aws_access_key_id=R2_ACCESS_KEY_ID,
            aws_secret_access_key=R2_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4"),
            region_name="auto",
        )

    def save(self, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        extra = {"ContentType": content_type} if content_type and not self.encrypted else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=self._encrypt(data), **extra)
            logger.info(f"✅ Uploaded {len(data)} bytes to R2: {key}")
        except ClientError as e:
            logger.error(f"❌ R2 upload failed for {key}: {e}")
            raise StorageError("Failed to store file") from e

    def load(self, key: str) -> bytes:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise StorageFileNotFound(key) from e
            logger.error(f"❌ R2 download failed for {key}: {e}")
            raise StorageError("Failed to read file") from e
        return self._decrypt(obj["Body"].read())

    def delete(self, key: str) -> None:
        if not self.exists(key):
            raise StorageFileNotFound(key)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            logger.error(f"❌ R2 delete failed for {key}: {e}")
            raise StorageError("Failed to delete file") from e

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError:
            return False

    def get_url(self, key: str, expires_in: int = PRESIGNED_URL_EXPIRATION) -> Optional[str]:
        # Encrypted objects are unreadable without the API
        if self.encrypted:
            return None
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key, "ResponseContentDisposition": "inline"},
                ExpiresIn=expires_in,
            )
        except ClientError as e:
            logger.error(f"❌ Failed to generate presigned URL for key {key}: {e}")
            return None


_storage: Optional[BaseStorage] = None


def get_storage() -> BaseStorage:
    """Configured storage backend (created once per process)"""
    global _storage
    if _storage is None:
        if STORAGE_BACKEND == "r2":
            _storage = R2Storage(DOCUMENT_ENCRYPTION_KEY)
            logger.info(f"📦 Document storage: R2 bucket {R2_BUCKET_NAME}")
        else:
            _storage = LocalFileStorage(UPLOAD_DIR, DOCUMENT_ENCRYPTION_KEY)
            logger.info(f"📦 Document storage: local directory {UPLOAD_DIR}")
        if not DOCUMENT_ENCRYPTION_KEY:
            logger.warning("⚠️ DOCUMENT_ENCRYPTION_KEY not set - documents are stored unencrypted")
    return _storage
