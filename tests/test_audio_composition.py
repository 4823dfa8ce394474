"""Tests for track selection."""

import random
from dataclasses import dataclass, field
from uuid import UUID, uuid4

import pytest

from bgm_engine.services.audio_composition import (
    AudioCompositionService,
    InsufficientTracksError,
    select_tracks,
)


@dataclass
class Track:
    duration_seconds: int | None
    id: UUID = field(default_factory=uuid4)


def tracks(*durations: int) -> list[Track]:
    return [Track(d) for d in durations]


class InOrder(random.Random):
    """Keeps the pool in its given order."""

    def shuffle(self, x):
        return None


class TestSelectTracks:
    """Tests for the greedy tolerance-window selection."""

    @pytest.mark.parametrize("seed", range(20))
    def test_total_within_window(self, seed):
        """Test uniform 240s tracks land inside [target, target + tolerance]."""
        pool = tracks(*([240] * 30))

        result = select_tracks(pool, target_seconds=3600, tolerance_seconds=300, rng=random.Random(seed))

        assert 3600 <= result.total_duration <= 3900
        assert result.tracks_used == 15
        assert result.available_count == 30

    @pytest.mark.parametrize("seed", range(20))
    def test_mixed_durations_never_exceed_upper_bound_with_multiple_tracks(self, seed):
        """Test an overshooting last pick is dropped when more than one track is held."""
        pool = tracks(150, 200, 240, 260, 300, 420, 180, 210, 500, 90, 330, 275)

        result = select_tracks(pool, target_seconds=1800, tolerance_seconds=120, rng=random.Random(seed))

        if result.tracks_used > 1:
            assert result.total_duration <= 1920
        assert len({t.id for t in result.selected_tracks}) == result.tracks_used

    def test_overshoot_drop_can_fall_short(self):
        """Test dropping the overshooting track may leave the total under target."""
        result = select_tracks(tracks(100, 1000), target_seconds=500, tolerance_seconds=100, rng=InOrder())

        assert [t.duration_seconds for t in result.selected_tracks] == [100]
        assert result.total_duration == 100

    def test_exact_lower_bound_stops_immediately(self):
        """Test reaching the target exactly ends selection without looking at more tracks."""
        result = select_tracks(tracks(300, 300, 100), target_seconds=600, tolerance_seconds=300, rng=InOrder())

        assert result.tracks_used == 2
        assert result.total_duration == 600

    @pytest.mark.parametrize("seed", range(10))
    def test_small_pool_uses_every_track(self, seed):
        """Test a 300/200/150 pool needs all three tracks to reach a 600s target."""
        pool = tracks(300, 200, 150)

        result = select_tracks(pool, target_seconds=600, tolerance_seconds=300, rng=random.Random(seed))

        assert 600 <= result.total_duration <= 900
        assert result.tracks_used == 3
        assert result.total_duration == 650

    def test_single_oversize_track_is_kept(self):
        """Test a lone track longer than the whole window is still selected."""
        result = select_tracks(tracks(5000), target_seconds=3600, tolerance_seconds=300)

        assert result.tracks_used == 1
        assert result.total_duration == 5000

    def test_empty_pool(self):
        with pytest.raises(InsufficientTracksError, match="No completed tracks available"):
            select_tracks([], target_seconds=600, tolerance_seconds=300)

    def test_insufficient_total(self):
        """Test the pool total is checked before selecting."""
        with pytest.raises(InsufficientTracksError) as exc_info:
            select_tracks(tracks(200, 200), target_seconds=600, tolerance_seconds=300)

        assert "400s available, 600s needed" in str(exc_info.value)
        assert exc_info.value.available == 400
        assert exc_info.value.required == 600

    def test_metadata_summary(self):
        pool = tracks(300, 300)
        result = select_tracks(pool, target_seconds=600, tolerance_seconds=0)

        metadata = result.to_metadata()

        assert metadata["total_duration"] == 600
        assert metadata["tracks_used"] == 2
        assert metadata["target_duration"] == 600
        assert sorted(metadata["selected_track_ids"]) == sorted(str(t.id) for t in pool)


class TestAudioCompositionService:
    """Tests for selecting from a content's stored tracks."""

    def test_only_completed_tracks_with_duration(self, db_session, make_content, make_track):
        content = make_content(duration_minutes=10)
        usable = [make_track(content, 240) for _ in range(3)]
        make_track(content, 240, status="failed")
        make_track(content, 240, status="processing")
        make_track(content, None)

        available = AudioCompositionService(db_session).available_tracks(content.id)

        assert {t.id for t in available} == {t.id for t in usable}

    def test_select_for_content(self, db_session, make_content, make_track):
        content = make_content(duration_minutes=10)
        for _ in range(4):
            make_track(content, 240)

        result = AudioCompositionService(db_session, tolerance_seconds=300).select_for(content)

        assert result.target_duration == 600
        assert result.total_duration == 720
        assert result.tracks_used == 3
