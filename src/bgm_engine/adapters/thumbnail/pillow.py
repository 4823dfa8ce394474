"""YouTube thumbnail generation with Pillow.

Takes a 1920x1080 artwork image and produces a 1280x720 JPEG with two white
horizontal bands and a centered caption.
"""

from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from bgm_engine.adapters.thumbnail.base import (
    ThumbnailGenerationError,
    ThumbnailGenerator,
    ThumbnailResult,
)
from bgm_engine.config import settings
from bgm_engine.logging import get_logger

logger = get_logger(__name__)

FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation2/LiberationSans-Bold.ttf",
    "/usr/share/fonts/truetype/noto/NotoSans-Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
    "/System/Library/Fonts/Arial.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
)


class PillowThumbnailGenerator(ThumbnailGenerator):
    """Render YouTube thumbnails from 1920x1080 artwork."""

    SUPPORTED_FORMATS = (".jpg", ".jpeg", ".png", ".bmp", ".tiff")
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
    EXPECTED_INPUT_SIZE = (1920, 1080)
    TARGET_SIZE = (1280, 720)
    JPEG_QUALITY = 92
    BAND_HEIGHT = 10
    BAND_TOP_Y = 100
    BAND_BOTTOM_Y = 620  # 720 - 100
    FONT_SIZE = 48

    def __init__(self, caption: str | None = None, font_path: str | None = None) -> None:
        self.caption = caption if caption is not None else settings.thumbnail_caption
        self.font_path = font_path or settings.thumbnail_font_path

    @property
    def name(self) -> str:
        return "pillow"

    def generate(self, input_path: Path, output_path: Path) -> ThumbnailResult:
        self._validate_input_file(input_path)

        logger.info(
            "thumbnail_generation_started",
            input_path=str(input_path),
            output_path=str(output_path),
        )

        try:
            with Image.open(input_path) as source:
                input_size = source.size
                self._validate_dimensions(input_size)
                thumbnail = source.convert("RGB").resize(
                    self.TARGET_SIZE, Image.Resampling.LANCZOS
                )
        except OSError as e:
            raise ThumbnailGenerationError(f"Image processing failed: {e}") from e

        self._draw_bands(thumbnail)
        self._draw_caption(thumbnail)
        self._save(thumbnail, output_path)
        self._validate_output(output_path)

        file_size = output_path.stat().st_size
        logger.info(
            "thumbnail_generation_completed",
            output_path=str(output_path),
            file_size=file_size,
        )

        return ThumbnailResult(
            output_path=output_path,
            input_size=input_size,
            output_size=self.TARGET_SIZE,
            file_size_bytes=file_size,
        )

    def _validate_input_file(self, input_path: Path) -> None:
        if not input_path.exists():
            raise ThumbnailGenerationError(f"Input file not found: {input_path}")

        size = input_path.stat().st_size
        if size == 0:
            raise ThumbnailGenerationError(f"Input file is empty: {input_path}")
        if size > self.MAX_FILE_SIZE:
            raise ThumbnailGenerationError(
                f"File size too large: {size} bytes (max: {self.MAX_FILE_SIZE} bytes)"
            )

        suffix = input_path.suffix.lower()
        if suffix not in self.SUPPORTED_FORMATS:
            raise ThumbnailGenerationError(
                f"Invalid image format: {suffix}. "
                f"Supported formats: {', '.join(self.SUPPORTED_FORMATS)}"
            )

    def _validate_dimensions(self, size: tuple[int, int]) -> None:
        if size != self.EXPECTED_INPUT_SIZE:
            width, height = size
            expected_w, expected_h = self.EXPECTED_INPUT_SIZE
            raise ThumbnailGenerationError(
                f"Invalid image dimensions: {width}x{height}. Expected: {expected_w}x{expected_h}"
            )

    def _draw_bands(self, image: Image.Image) -> None:
        draw = ImageDraw.Draw(image)
        width = image.width
        for top in (self.BAND_TOP_Y, self.BAND_BOTTOM_Y):
            draw.rectangle(
                (0, top, width - 1, top + self.BAND_HEIGHT - 1),
                fill=(255, 255, 255),
            )

    def _draw_caption(self, image: Image.Image) -> None:
        if not self.caption:
            return

        draw = ImageDraw.Draw(image)
        font = self._load_font()
        left, top, right, bottom = draw.textbbox((0, 0), self.caption, font=font)
        x = (image.width - (right - left)) / 2 - left
        y = (image.height - (bottom - top)) / 2 - top
        draw.text((x, y), self.caption, font=font, fill=(255, 255, 255))

    def _load_font(self) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        candidates = [self.font_path] if self.font_path else []
        candidates.extend(FONT_CANDIDATES)
        for candidate in candidates:
            if candidate and Path(candidate).exists():
                try:
                    return ImageFont.truetype(candidate, self.FONT_SIZE)
                except OSError as e:
                    logger.warning("thumbnail_font_load_failed", font=candidate, error=str(e))

        logger.warning("thumbnail_font_fallback", size=self.FONT_SIZE)
        return ImageFont.load_default(size=self.FONT_SIZE)

    def _save(self, image: Image.Image, output_path: Path) -> None:
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            image.save(output_path, format="JPEG", quality=self.JPEG_QUALITY)
        except OSError as e:
            raise ThumbnailGenerationError(f"Failed to save output file: {e}") from e

    def _validate_output(self, output_path: Path) -> None:
        if not output_path.exists():
            raise ThumbnailGenerationError(f"Output file was not created: {output_path}")
        if output_path.stat().st_size == 0:
            raise ThumbnailGenerationError(f"Output file is empty: {output_path}")

        try:
            with Image.open(output_path) as written:
                size = written.size
        except OSError as e:
            raise ThumbnailGenerationError(f"Output file is not a valid image: {e}") from e

        if size != self.TARGET_SIZE:
            raise ThumbnailGenerationError(
                f"Output file has incorrect dimensions: {size[0]}x{size[1]}"
            )
