"""
File storage for uploaded documents.

Only local disk storage is implemented. Files are stored under
STORAGE_LOCAL_PATH with the key ``<uuid>-<sanitised original name>``; the key
is what Document.filename holds and what signed URLs point at.
"""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from contract_analysis.config import settings
from contract_analysis.exceptions import ConfigurationError
from contract_analysis.utils.security import generate_signed_url, sanitize_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    key: str
    path: str
    size: int


class LocalStorageService:
    """Stores files on the local filesystem."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)

    def _path_for(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise FileNotFoundError(key)
        return path

    def save(self, data: bytes, original_name: str) -> StoredFile:
        self.base_path.mkdir(parents=True, exist_ok=True)
        key = f"{uuid.uuid4()}-{sanitize_filename(original_name)}"
        path = self._path_for(key)
        path.write_bytes(data)
        logger.info(f"Stored file {key} ({len(data)} bytes)")
        return StoredFile(key=key, path=str(path), size=len(data))

    def read(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        return path.read_bytes()

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if path.exists():
            path.unlink()

    def signed_url(self, key: str, expires_in: Optional[int] = None) -> str:
        return generate_signed_url(
            key,
            settings.FILE_SIGNING_SECRET,
            expires_in or settings.SIGNED_URL_TTL_SECONDS,
        )


def create_storage_service(storage_type: str, local_path: str) -> LocalStorageService:
    """Build the storage backend named by ``storage_type``."""
    if storage_type == "local":
        return LocalStorageService(local_path)
    raise ConfigurationError(f"Unsupported storage type: {storage_type}")


_storage: Optional[LocalStorageService] = None


def get_storage_service() -> LocalStorageService:
    """FastAPI dependency returning the configured storage backend."""
    global _storage
    if _storage is None:
        _storage = create_storage_service(settings.STORAGE_TYPE, settings.STORAGE_LOCAL_PATH)
    return _storage
