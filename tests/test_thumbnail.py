"""Tests for thumbnail generation and the derivative service."""

from unittest.mock import MagicMock

import pytest
from PIL import Image

from bgm_engine.adapters.thumbnail.base import ThumbnailGenerationError
from bgm_engine.adapters.thumbnail.pillow import PillowThumbnailGenerator
from bgm_engine.db.models import ArtworkModel
from bgm_engine.services.derivatives import DerivativeService


class TestPillowThumbnailGenerator:
    """Tests for the YouTube thumbnail renderer."""

    def test_generates_720p_jpeg_with_bands(self, artwork_image, tmp_path):
        source = artwork_image()
        output = tmp_path / "thumb.jpg"

        result = PillowThumbnailGenerator(caption="Lofi BGM").generate(source, output)

        assert result.input_size == (1920, 1080)
        assert result.output_size == (1280, 720)
        assert result.file_size_bytes == output.stat().st_size
        with Image.open(output) as image:
            assert image.format == "JPEG"
            assert image.size == (1280, 720)
            # Bands are white, the background is not
            band = image.getpixel((20, 105))
            background = image.getpixel((20, 300))
            assert min(band) > 240
            assert max(background) < 200

    def test_rejects_wrong_dimensions(self, artwork_image, tmp_path):
        source = artwork_image(size=(1280, 720))

        with pytest.raises(ThumbnailGenerationError, match="Invalid image dimensions: 1280x720. Expected: 1920x1080"):
            PillowThumbnailGenerator().generate(source, tmp_path / "thumb.jpg")

    def test_rejects_unsupported_format(self, tmp_path):
        source = tmp_path / "art.gif"
        source.write_bytes(b"GIF89a" + bytes(32))

        with pytest.raises(ThumbnailGenerationError, match="Invalid image format"):
            PillowThumbnailGenerator().generate(source, tmp_path / "thumb.jpg")

    def test_rejects_missing_and_empty(self, tmp_path):
        with pytest.raises(ThumbnailGenerationError, match="Input file not found"):
            PillowThumbnailGenerator().generate(tmp_path / "none.png", tmp_path / "thumb.jpg")

        empty = tmp_path / "empty.png"
        empty.touch()
        with pytest.raises(ThumbnailGenerationError, match="Input file is empty"):
            PillowThumbnailGenerator().generate(empty, tmp_path / "thumb.jpg")

    def test_rejects_corrupt_image(self, tmp_path):
        source = tmp_path / "broken.png"
        source.write_bytes(b"not really a png")

        with pytest.raises(ThumbnailGenerationError, match="Image processing failed"):
            PillowThumbnailGenerator().generate(source, tmp_path / "thumb.jpg")


@pytest.fixture
def make_artwork(db_session, make_content):
    def _make(image_path=None, width=1920, height=1080, derivatives=None):
        content = make_content()
        artwork = ArtworkModel(
            content_id=content.id,
            image_file_path=str(image_path) if image_path else None,
            width=width,
            height=height,
            derivatives=derivatives or {},
        )
        db_session.add(artwork)
        db_session.commit()
        return artwork

    return _make


class TestDerivativeService:
    """Tests for artwork derivative processing."""

    def test_generates_thumbnail(self, db_session, make_artwork, artwork_image, storage):
        artwork = make_artwork(artwork_image())

        result = DerivativeService(db_session, PillowThumbnailGenerator(), storage).process(artwork.id)

        assert result["action"] == "generated"
        assert artwork.has_youtube_thumbnail
        assert storage.exists(artwork.derivatives["youtube_thumbnail"])
        assert "/thumbnails/" in artwork.derivatives["youtube_thumbnail"]

    def test_missing_artwork_is_discarded(self, db_session, storage):
        import uuid

        generator = MagicMock()
        result = DerivativeService(db_session, generator, storage).process(uuid.uuid4())

        assert result["action"] == "discarded"
        generator.generate.assert_not_called()

    def test_missing_image_file_is_discarded(self, db_session, make_artwork, tmp_path, storage):
        artwork = make_artwork(tmp_path / "gone.png")

        result = DerivativeService(db_session, MagicMock(), storage).process(artwork.id)

        assert result["action"] == "discarded"

    def test_existing_thumbnail_skipped(self, db_session, make_artwork, artwork_image, storage):
        artwork = make_artwork(artwork_image(), derivatives={"youtube_thumbnail": "/thumbs/x.jpg"})
        generator = MagicMock()

        result = DerivativeService(db_session, generator, storage).process(artwork.id)

        assert result["action"] == "skipped"
        generator.generate.assert_not_called()

    def test_non_full_hd_artwork_ineligible(self, db_session, make_artwork, artwork_image, storage):
        artwork = make_artwork(artwork_image(size=(1280, 720)), width=1280, height=720)

        result = DerivativeService(db_session, MagicMock(), storage).process(artwork.id)

        assert result["action"] == "ineligible"
        assert not artwork.has_youtube_thumbnail

    def test_generation_errors_propagate(self, db_session, make_artwork, artwork_image, storage):
        artwork = make_artwork(artwork_image())
        generator = MagicMock()
        generator.generate.side_effect = ThumbnailGenerationError("Output file is empty")

        with pytest.raises(ThumbnailGenerationError):
            DerivativeService(db_session, generator, storage).process(artwork.id)
