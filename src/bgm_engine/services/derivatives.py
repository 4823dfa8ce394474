"""Image derivatives produced from artwork (currently the YouTube thumbnail)."""

import tempfile
from pathlib import Path
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from bgm_engine.adapters.thumbnail.base import ThumbnailGenerator
from bgm_engine.adapters.thumbnail.pillow import PillowThumbnailGenerator
from bgm_engine.db.models import ArtworkModel
from bgm_engine.domain.enums import AssetKind, DerivativeVariant
from bgm_engine.logging import get_logger
from bgm_engine.services.storage import StorageService

logger = get_logger(__name__)


class DerivativeService:
    def __init__(
        self,
        session: Session,
        generator: ThumbnailGenerator | None = None,
        storage: StorageService | None = None,
    ) -> None:
        self.session = session
        self.generator = generator or PillowThumbnailGenerator()
        self.storage = storage or StorageService()

    def process(self, artwork_id: UUID) -> dict[str, Any]:
        """Generate the YouTube thumbnail for an artwork if it needs one.

        Missing artwork (or a missing image file) is reported as ``discarded``
        rather than raised: there is nothing left to retry against. Generation
        errors propagate so the caller's retry policy applies.
        """
        variant = DerivativeVariant.YOUTUBE_THUMBNAIL
        artwork = self.session.get(ArtworkModel, artwork_id)

        if artwork is None or not artwork.has_image or not self.storage.exists(artwork.image_file_path):
            logger.warning("derivative_artwork_missing", artwork_id=str(artwork_id))
            return {"artwork_id": str(artwork_id), "action": "discarded"}

        if artwork.has_youtube_thumbnail:
            logger.info("derivative_already_exists", artwork_id=str(artwork_id), variant=variant)
            return {"artwork_id": str(artwork_id), "action": "skipped"}

        if not artwork.youtube_thumbnail_eligible:
            logger.info(
                "derivative_not_eligible",
                artwork_id=str(artwork_id),
                width=artwork.width,
                height=artwork.height,
            )
            return {"artwork_id": str(artwork_id), "action": "ineligible"}

        with tempfile.TemporaryDirectory(prefix="bgm_thumb_") as tmp:
            workdir = Path(tmp)
            source = self.storage.fetch_to(
                artwork.image_file_path,
                workdir / f"source{Path(artwork.image_file_path).suffix.lower()}",
            )
            result = self.generator.generate(source, workdir / f"{variant}.jpg")
            stored = self.storage.store_file(
                result.output_path, AssetKind.THUMBNAIL, artwork.id, move=True
            )

        artwork.derivatives = {**(artwork.derivatives or {}), variant.value: str(stored.file_path)}
        self.session.commit()

        logger.info(
            "derivative_generated",
            artwork_id=str(artwork_id),
            variant=variant,
            file_size=result.file_size_bytes,
        )
        return {
            "artwork_id": str(artwork_id),
            "action": "generated",
            "variant": variant.value,
            "path": str(stored.file_path),
        }
