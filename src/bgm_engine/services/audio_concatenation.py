"""Lossless audio concatenation with ffmpeg's concat demuxer."""

import subprocess
import tempfile
from pathlib import Path

from bgm_engine.config import settings
from bgm_engine.logging import get_logger

logger = get_logger(__name__)


class ConcatenationError(Exception):
    """ffmpeg failed to produce the concatenated output."""

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr


class InvalidTracksError(ConcatenationError):
    """The list of inputs is empty or malformed."""


class MissingAudioFileError(ConcatenationError):
    """An input file does not exist."""


def build_manifest(paths: list[Path]) -> str:
    """Build a concat demuxer manifest, one ``file '<absolute path>'`` line per input."""
    lines = []
    for path in paths:
        escaped = str(path.resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    return "\n".join(lines) + "\n"


class AudioConcatenationService:
    """Join audio files end to end without re-encoding (``-c copy``)."""

    def __init__(self, ffmpeg_path: str | None = None, timeout: float | None = None) -> None:
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path or "ffmpeg"
        self.timeout = timeout if timeout is not None else settings.ffmpeg_concat_timeout

    def concatenate(self, paths: list[Path], output_path: Path) -> Path:
        """Concatenate ``paths`` in order into ``output_path``.

        Raises:
            InvalidTracksError: No inputs were given
            MissingAudioFileError: An input does not exist
            ConcatenationError: ffmpeg failed or produced no output
        """
        if not paths:
            raise InvalidTracksError("No tracks provided for concatenation")

        for path in paths:
            if not path.is_file():
                raise MissingAudioFileError(f"Audio file not found: {path}")

        output_path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="w",
            suffix=".txt",
            prefix="concat_",
            dir=output_path.parent,
            delete=False,
        ) as manifest:
            manifest.write(build_manifest(paths))
            manifest_path = Path(manifest.name)

        cmd = [
            self.ffmpeg_path,
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(manifest_path),
            "-c",
            "copy",
            "-y",
            str(output_path),
        ]

        logger.info(
            "audio_concatenation_started",
            track_count=len(paths),
            output_path=str(output_path),
        )

        try:
            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except subprocess.TimeoutExpired as e:
                raise ConcatenationError(
                    f"ffmpeg concatenation timed out after {self.timeout}s"
                ) from e
            except OSError as e:
                raise ConcatenationError(f"Failed to run ffmpeg: {e}") from e

            if result.returncode != 0:
                stderr = (result.stderr or "")[-2000:]
                logger.error(
                    "audio_concatenation_failed",
                    returncode=result.returncode,
                    stderr=stderr[-500:],
                )
                raise ConcatenationError(
                    f"ffmpeg exited with status {result.returncode}: {stderr.strip()[-300:]}",
                    stderr=stderr,
                )

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise ConcatenationError(f"ffmpeg produced no output at {output_path}")
        finally:
            manifest_path.unlink(missing_ok=True)

        logger.info(
            "audio_concatenation_completed",
            output_path=str(output_path),
            file_size=output_path.stat().st_size,
        )
        return output_path
