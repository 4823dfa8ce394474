"""Still-image + audio to video transcoding with ffmpeg."""

import subprocess
from dataclasses import dataclass
from pathlib import Path

from bgm_engine.config import settings
from bgm_engine.logging import get_logger

logger = get_logger(__name__)


class VideoGenerationError(Exception):
    """ffmpeg failed to render the video."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr


@dataclass(frozen=True)
class EncodingProfile:
    """Fixed output profile for YouTube uploads."""

    width: int = 1920
    height: int = 1080
    fps: int = 30
    video_codec: str = "libx264"
    preset: str = "slow"
    crf: int = 18
    pixel_format: str = "yuv420p"
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"
    audio_sample_rate: int = 48000

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


YOUTUBE_PROFILE = EncodingProfile()


class VideoGenerationService:
    """Loop a still image over an audio track for the audio's full length."""

    def __init__(
        self,
        ffmpeg_path: str | None = None,
        timeout: float | None = None,
        profile: EncodingProfile = YOUTUBE_PROFILE,
    ) -> None:
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path or "ffmpeg"
        self.timeout = timeout if timeout is not None else settings.ffmpeg_timeout
        self.profile = profile

    def build_command(self, image_path: Path, audio_path: Path, output_path: Path) -> list[str]:
        p = self.profile
        return [
            self.ffmpeg_path,
            "-loop",
            "1",
            "-i",
            str(image_path),
            "-i",
            str(audio_path),
            "-c:v",
            p.video_codec,
            "-preset",
            p.preset,
            "-crf",
            str(p.crf),
            "-r",
            str(p.fps),
            "-s",
            p.resolution,
            "-pix_fmt",
            p.pixel_format,
            "-c:a",
            p.audio_codec,
            "-b:a",
            p.audio_bitrate,
            "-ar",
            str(p.audio_sample_rate),
            "-shortest",
            "-movflags",
            "+faststart",
            "-y",
            str(output_path),
        ]

    def generate(self, image_path: Path, audio_path: Path, output_path: Path) -> Path:
        """Render ``output_path`` from an image and an audio file.

        Raises:
            VideoGenerationError: Inputs missing, ffmpeg failed or timed out, or no output
        """
        for label, path in (("Artwork", image_path), ("Audio", audio_path)):
            if not path.is_file():
                raise VideoGenerationError(f"{label} file not found: {path}")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_command(image_path, audio_path, output_path)

        logger.info(
            "video_encode_started",
            image_path=str(image_path),
            audio_path=str(audio_path),
            output_path=str(output_path),
            resolution=self.profile.resolution,
        )

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else e.stderr
            raise VideoGenerationError(
                f"ffmpeg timed out after {self.timeout}s", stderr=stderr
            ) from e
        except OSError as e:
            raise VideoGenerationError(f"Failed to run ffmpeg: {e}") from e

        if result.returncode != 0:
            stderr = (result.stderr or "")[-4000:]
            logger.error(
                "video_encode_failed",
                returncode=result.returncode,
                stderr=stderr[-500:],
            )
            raise VideoGenerationError(
                f"ffmpeg exited with status {result.returncode}: {stderr.strip()[-300:]}",
                stderr=stderr,
            )

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise VideoGenerationError(
                f"ffmpeg produced no output at {output_path}", stderr=result.stderr
            )

        logger.info(
            "video_encode_completed",
            output_path=str(output_path),
            file_size=output_path.stat().st_size,
        )
        return output_path
