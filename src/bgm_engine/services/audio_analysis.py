"""Audio duration probing with ffprobe."""

import json
import subprocess
from pathlib import Path

from bgm_engine.config import settings
from bgm_engine.logging import get_logger

logger = get_logger(__name__)


class AudioAnalysisService:
    """Reads container-level duration from audio files.

    Failures never raise: an unknown duration is reported as None and callers
    fall back to whatever they already know.
    """

    def __init__(self, ffprobe_path: str | None = None, timeout: float | None = None) -> None:
        self.ffprobe_path = ffprobe_path or settings.ffprobe_path or "ffprobe"
        self.timeout = timeout if timeout is not None else settings.ffprobe_timeout

    def analyze_duration(self, path: Path) -> int | None:
        """Return the duration of ``path`` in whole seconds, or None if it can't be read."""
        if not path.exists():
            logger.warning("audio_analysis_missing_file", path=str(path))
            return None

        cmd = [
            self.ffprobe_path,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            str(path),
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("audio_analysis_timeout", path=str(path), timeout=self.timeout)
            return None
        except OSError as e:
            logger.warning("audio_analysis_ffprobe_unavailable", path=str(path), error=str(e))
            return None

        if result.returncode != 0:
            logger.warning(
                "audio_analysis_failed",
                path=str(path),
                returncode=result.returncode,
                stderr=(result.stderr or "")[:500],
            )
            return None

        try:
            duration = float(json.loads(result.stdout)["format"]["duration"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("audio_analysis_unparseable", path=str(path), error=str(e))
            return None

        seconds = int(round(duration))
        logger.debug("audio_analysis_completed", path=str(path), duration=seconds)
        return seconds
