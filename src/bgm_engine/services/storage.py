"""Payload storage service for tracks, audio programs, videos and images."""

import hashlib
import mimetypes
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from uuid import UUID, uuid4

from bgm_engine.config import settings
from bgm_engine.domain.enums import AssetKind
from bgm_engine.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StoredAsset:
    """Metadata for a stored payload."""

    id: UUID
    kind: AssetKind
    file_path: Path
    file_size_bytes: int
    mime_type: str | None
    checksum: str
    created_at: datetime


class StorageService:
    """Local-disk storage for binary payloads.

    Records keep the returned ``file_path``; processing code copies payloads
    out to temporary paths with ``fetch_to`` so that stored files are never
    mutated in place.
    """

    SUBDIRS = {
        AssetKind.TRACK: "tracks",
        AssetKind.AUDIO: "audio",
        AssetKind.VIDEO: "videos",
        AssetKind.ARTWORK: "artwork",
        AssetKind.THUMBNAIL: "thumbnails",
    }

    def __init__(
        self,
        base_path: Path | None = None,
        create_dirs: bool = True,
    ) -> None:
        """Initialize storage service.

        Args:
            base_path: Base directory for local storage. Defaults to settings.storage_path
            create_dirs: Whether to create directories if they don't exist
        """
        self.base_path = Path(base_path or settings.storage_path)

        if create_dirs:
            self._ensure_dirs()

    def _ensure_dirs(self) -> None:
        """Create storage directories."""
        for subdir in self.SUBDIRS.values():
            (self.base_path / subdir).mkdir(parents=True, exist_ok=True)

    def _get_subdir(self, kind: AssetKind) -> Path:
        """Get subdirectory for a payload kind."""
        return self.base_path / self.SUBDIRS[kind]

    @staticmethod
    def _compute_checksum(path: Path) -> str:
        """Compute SHA256 checksum of a file without loading it into memory."""
        digest = hashlib.sha256()
        with path.open("rb") as fh:
            for chunk in iter(lambda: fh.read(1024 * 1024), b""):
                digest.update(chunk)
        return digest.hexdigest()

    def store_file(
        self,
        source: Path,
        kind: AssetKind,
        owner_id: UUID,
        filename: str | None = None,
        move: bool = False,
    ) -> StoredAsset:
        """Store a file produced by processing.

        Args:
            source: File to store
            kind: Payload kind (selects the subdirectory)
            owner_id: Id of the owning record, used in the generated filename
            filename: Optional custom filename
            move: Move instead of copy (for temporary outputs)

        Returns:
            StoredAsset describing the stored copy
        """
        if not source.exists():
            raise FileNotFoundError(f"Cannot store missing file: {source}")

        asset_id = uuid4()
        if not filename:
            filename = f"{owner_id}_{asset_id.hex[:8]}{source.suffix}"

        destination = self._get_subdir(kind) / filename
        destination.parent.mkdir(parents=True, exist_ok=True)
        if move:
            shutil.move(str(source), destination)
        else:
            shutil.copy2(source, destination)

        stored = StoredAsset(
            id=asset_id,
            kind=kind,
            file_path=destination,
            file_size_bytes=destination.stat().st_size,
            mime_type=mimetypes.guess_type(destination.name)[0],
            checksum=self._compute_checksum(destination),
            created_at=datetime.now(),
        )

        logger.info(
            "storage_file_stored",
            kind=kind,
            file_path=str(destination),
            file_size=stored.file_size_bytes,
        )
        return stored

    def store_bytes(
        self,
        data: bytes,
        kind: AssetKind,
        owner_id: UUID,
        extension: str,
    ) -> StoredAsset:
        """Store raw bytes as a payload."""
        asset_id = uuid4()
        destination = self._get_subdir(kind) / f"{owner_id}_{asset_id.hex[:8]}{extension}"
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)

        return StoredAsset(
            id=asset_id,
            kind=kind,
            file_path=destination,
            file_size_bytes=len(data),
            mime_type=mimetypes.guess_type(destination.name)[0],
            checksum=hashlib.sha256(data).hexdigest(),
            created_at=datetime.now(),
        )

    def exists(self, stored_path: str | Path | None) -> bool:
        return bool(stored_path) and Path(stored_path).is_file()

    def fetch_to(self, stored_path: str | Path, destination: Path) -> Path:
        """Copy a stored payload to ``destination`` for processing."""
        source = Path(stored_path)
        if not source.is_file():
            raise FileNotFoundError(f"Stored file not found: {source}")

        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)
        return destination

    def delete(self, stored_path: str | Path | None) -> bool:
        """Delete a stored payload. Returns False if there was nothing to delete."""
        if not stored_path:
            return False
        path = Path(stored_path)
        if not path.exists():
            return False
        path.unlink()
        logger.info("storage_file_deleted", file_path=str(path))
        return True
