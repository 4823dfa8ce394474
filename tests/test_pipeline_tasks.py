"""Unit tests for the Celery pipeline tasks."""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import Retry

from bgm_engine.adapters.music_gen.errors import (
    AuthenticationError,
    ConfigurationError,
    RateLimitError,
)
from bgm_engine.adapters.thumbnail.base import ThumbnailGenerationError
from bgm_engine.db.models import MusicGenerationModel, VideoModel
from bgm_engine.domain.enums import GenerationStatus
from bgm_engine.jobs import derivative_pipeline, music_pipeline
from bgm_engine.jobs.derivative_pipeline import process_artwork_task
from bgm_engine.jobs.music_pipeline import generate_music_task
from bgm_engine.jobs.video_pipeline import render_video_task
from bgm_engine.services.video_render import VideoOutcome


class TestMusicPipelineHelpers:
    """Tests for music pipeline helper functions."""

    def test_get_music_gen_provider_stub(self):
        """Test that the stub provider is returned when configured."""
        with patch("bgm_engine.jobs.music_pipeline.settings") as mock_settings:
            mock_settings.music_gen_provider = "stub"

            from bgm_engine.adapters.music_gen.stub import StubMusicGenProvider

            assert isinstance(music_pipeline.get_music_gen_provider(), StubMusicGenProvider)

    def test_get_music_gen_provider_kie(self):
        """Test that Kie is the default provider."""
        with patch("bgm_engine.jobs.music_pipeline.settings") as mock_settings:
            mock_settings.music_gen_provider = "kie"

            from bgm_engine.adapters.music_gen.kie import KieProvider

            assert isinstance(music_pipeline.get_music_gen_provider(), KieProvider)

    def test_retry_budgets(self):
        assert music_pipeline.retry_attempts_for(RateLimitError("slow down")) == 5
        assert music_pipeline.retry_attempts_for(AuthenticationError("bad key")) == 3

    def test_retry_countdown_is_bounded(self):
        assert music_pipeline.retry_countdown(0) == 30
        assert music_pipeline.retry_countdown(2) == 120
        assert music_pipeline.retry_countdown(10) == 600


@pytest.fixture
def pending_generation(db_session, make_content):
    content = make_content(duration_minutes=10)
    generation = MusicGenerationModel(
        content_id=content.id,
        prompt=content.audio_prompt,
        generation_model="V4_5PLUS",
        status="pending",
        metadata_={},
    )
    db_session.add(generation)
    db_session.commit()
    return generation


class TestGenerateMusicTask:
    """Tests for the self-rescheduling music task."""

    def test_submit_reschedules_itself(self, pending_generation, session_context, scripted_provider):
        """Test a submission re-enqueues the task with the poll interval as countdown."""
        provider = scripted_provider()
        with (
            patch("bgm_engine.jobs.music_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.music_pipeline.get_music_gen_provider", return_value=provider),
            patch.object(generate_music_task, "apply_async") as apply_async,
        ):
            result = generate_music_task.run(str(pending_generation.id))

        assert result["success"] is True
        assert result["action"] == "submitted"
        assert pending_generation.status == "processing"
        apply_async.assert_called_once_with(args=[str(pending_generation.id)], countdown=30.0)

    def test_configuration_error_leaves_pending(self, pending_generation, session_context):
        """Test a missing API key is raised and the request stays pending."""
        provider = MagicMock()
        provider.submit.side_effect = ConfigurationError("KIE_API_KEY is not set")
        with (
            patch("bgm_engine.jobs.music_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.music_pipeline.get_music_gen_provider", return_value=provider),
        ):
            with pytest.raises(ConfigurationError):
                generate_music_task.run(str(pending_generation.id))

        assert pending_generation.status == "pending"
        provider.close.assert_called_once()

    def test_api_error_is_retried(self, pending_generation, session_context):
        provider = MagicMock()
        provider.submit.side_effect = RateLimitError("Rate limit exceeded")
        with (
            patch("bgm_engine.jobs.music_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.music_pipeline.get_music_gen_provider", return_value=provider),
            patch.object(generate_music_task, "retry", side_effect=Retry()) as retry,
        ):
            with pytest.raises(Retry):
                generate_music_task.run(str(pending_generation.id))

        assert retry.call_args.kwargs["max_retries"] == 4
        assert retry.call_args.kwargs["countdown"] == 30
        assert pending_generation.status == "pending"

    def test_api_error_on_last_attempt_marks_failed(self, pending_generation, session_context):
        """Test the request is failed once the retry budget is spent."""
        provider = MagicMock()
        provider.submit.side_effect = AuthenticationError("Authentication failed. Check your API key")
        with (
            patch("bgm_engine.jobs.music_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.music_pipeline.get_music_gen_provider", return_value=provider),
            patch.object(generate_music_task, "retry") as retry,
        ):
            generate_music_task.push_request(retries=2)
            try:
                result = generate_music_task.run(str(pending_generation.id))
            finally:
                generate_music_task.pop_request()

        retry.assert_not_called()
        assert result["success"] is False
        assert pending_generation.status == "failed"
        assert pending_generation.metadata_["error"].startswith("Job error: Authentication failed")

    def test_unexpected_error_marks_failed(self, pending_generation, session_context):
        provider = MagicMock()
        provider.submit.side_effect = RuntimeError("boom")
        with (
            patch("bgm_engine.jobs.music_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.music_pipeline.get_music_gen_provider", return_value=provider),
        ):
            result = generate_music_task.run(str(pending_generation.id))

        assert result["success"] is False
        assert pending_generation.status == "failed"
        assert pending_generation.metadata_["error"] == "Job error: boom"

    def test_missing_generation_discarded(self, db_session, session_context, scripted_provider):
        with (
            patch("bgm_engine.jobs.music_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.music_pipeline.get_music_gen_provider", return_value=scripted_provider()),
        ):
            result = generate_music_task.run(str(uuid.uuid4()))

        assert result["success"] is False
        assert result["error"] == "Generation not found"


class TestRenderVideoTask:
    """Tests for the render task's deferral handling."""

    def test_deferred_render_is_requeued(self, session_context):
        video_id = uuid.uuid4()
        service = MagicMock()
        service.render.return_value = VideoOutcome(video_id, GenerationStatus.PENDING, "deferred", error="busy")

        with (
            patch("bgm_engine.jobs.video_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.video_pipeline.get_render_slot_limiter") as get_limiter,
            patch("bgm_engine.jobs.video_pipeline.VideoRenderService", return_value=service),
            patch.object(render_video_task, "apply_async") as apply_async,
        ):
            result = render_video_task.run(str(video_id))

        assert result["action"] == "deferred"
        apply_async.assert_called_once_with(args=[str(video_id)], countdown=60)
        get_limiter.return_value.close.assert_called_once_with()

    def test_unexpected_error_marks_failed(self, db_session, make_content, session_context):
        content = make_content()
        video = VideoModel(content_id=content.id, status="pending")
        db_session.add(video)
        db_session.commit()
        limiter = MagicMock()

        with (
            patch("bgm_engine.jobs.video_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.video_pipeline.get_render_slot_limiter", return_value=limiter),
            patch(
                "bgm_engine.jobs.video_pipeline.VideoRenderService.render",
                side_effect=RuntimeError("redis went away"),
            ),
        ):
            result = render_video_task.run(str(video.id))

        assert result["success"] is False
        assert video.status == "failed"
        assert video.error_message == "Job error: redis went away"
        limiter.close.assert_called_once_with()


class TestProcessArtworkTask:
    """Tests for derivative task retry budgets."""

    def test_retry_budgets(self):
        assert derivative_pipeline.retry_attempts_for(ThumbnailGenerationError("bad")) == 2
        assert derivative_pipeline.retry_attempts_for(OSError("disk")) == 3

    @pytest.mark.parametrize(
        "error,max_retries",
        [(ThumbnailGenerationError("Output file is empty"), 1), (RuntimeError("boom"), 2)],
    )
    def test_errors_retried_with_budget(self, session_context, error, max_retries):
        service = MagicMock()
        service.process.side_effect = error

        with (
            patch("bgm_engine.jobs.derivative_pipeline.get_session_context", session_context),
            patch("bgm_engine.jobs.derivative_pipeline.DerivativeService", return_value=service),
            patch.object(process_artwork_task, "retry", side_effect=Retry()) as retry,
        ):
            with pytest.raises(Retry):
                process_artwork_task.run(str(uuid.uuid4()))

        assert retry.call_args.kwargs["max_retries"] == max_retries
        assert retry.call_args.kwargs["exc"] is error

    def test_missing_artwork_not_retried(self, db_session, session_context):
        with (
            patch("bgm_engine.jobs.derivative_pipeline.get_session_context", session_context),
            patch.object(process_artwork_task, "retry") as retry,
        ):
            result = process_artwork_task.run(str(uuid.uuid4()))

        assert result["action"] == "discarded"
        retry.assert_not_called()
