"""Base interface for thumbnail generators."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


class ThumbnailGenerationError(Exception):
    """Raised when a thumbnail cannot be produced from the input image."""


@dataclass
class ThumbnailResult:
    """Result from thumbnail generation."""

    output_path: Path
    input_size: tuple[int, int]
    output_size: tuple[int, int]
    file_size_bytes: int


class ThumbnailGenerator(ABC):
    """Abstract base class for thumbnail generators.

    Implementations:
    - PillowThumbnailGenerator: YouTube thumbnail with bands and caption, via Pillow
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Generator name identifier."""
        ...

    @abstractmethod
    def generate(self, input_path: Path, output_path: Path) -> ThumbnailResult:
        """Render a thumbnail of ``input_path`` into ``output_path``.

        Raises:
            ThumbnailGenerationError: If the input is unusable or the output is invalid
        """
        ...
