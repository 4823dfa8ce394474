"""API route modules."""

from bgm_engine.api.routes import health, jobs

__all__ = ["health", "jobs"]
