"""BGM Engine - background-music video pipeline."""

__version__ = "0.1.0"
