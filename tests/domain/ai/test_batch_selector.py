"""Tests for batched track selection."""

import json

import pytest

from helpers import ScriptedModel, make_profile, make_tracks

from music_blend.domain.ai.batch_selector import (
    BatchSelectionError,
    energy_stage_for_batch,
    resolve_selections,
    round_robin_fill,
    select_tracks_in_batches,
)
from music_blend.domain.ai.strategy import BlendStrategy, fallback_strategy


def selections(*pairs) -> str:
    """JSON answer picking (userIndex, trackIndex) pairs."""
    return json.dumps([{"userIndex": u, "trackIndex": t, "reasoning": "fit"} for u, t in pairs])


@pytest.fixture
def profiles() -> list:
    return [
        make_profile("user-a", make_tracks("A", 5)),
        make_profile("user-b", make_tracks("B", 5)),
    ]


@pytest.fixture
def strategy() -> BlendStrategy:
    return BlendStrategy(
        overall_mood="sunny-indie",
        energy_progression=["warm-up", "build", "peak", "sustain", "cool-down"],
        genre_mixing_style="interweave",
        tracks_per_user=[5, 5],
        reasoning="",
    )


class TestSelectTracksInBatches:
    """Tests for select_tracks_in_batches."""

    def test_all_batches_fail_is_global_round_robin(self, profiles, failing_model):
        """When every call fails the output is exactly A1,B1,...,A5,B5."""
        result = select_tracks_in_batches(
            profiles, fallback_strategy(2, 10), failing_model, target_count=10
        )
        assert [s.track.id for s in result.tracks] == [
            "A1", "B1", "A2", "B2", "A3", "B3", "A4", "B4", "A5", "B5",
        ]
        assert [s.position for s in result.tracks] == list(range(1, 11))
        assert all(s.reasoning == "round-robin fallback" for s in result.tracks)
        assert result.fallback_batches == 2
        assert result.total_tokens == 0

    def test_rotation_continues_across_batches(self, profiles, failing_model):
        """An odd batch size does not restart the rotation at the first user."""
        result = select_tracks_in_batches(
            profiles, fallback_strategy(2, 6), failing_model, target_count=6, batch_size=3
        )
        assert [s.contributed_by for s in result.tracks] == ["user-a", "user-b"] * 3

    def test_stops_when_candidates_run_out(self, failing_model):
        """Fewer candidates than the target gives a short playlist, no error."""
        short = [make_profile("user-a", make_tracks("A", 3)), make_profile("user-b", make_tracks("B", 3))]
        result = select_tracks_in_batches(short, fallback_strategy(2, 55), failing_model, target_count=55)
        assert len(result.tracks) == 6
        assert len({s.track.id for s in result.tracks}) == 6

    def test_model_selections_used(self, profiles, strategy):
        model = ScriptedModel(selections((0, 1), (1, 1), (0, 2), (1, 2)), tokens=250)
        result = select_tracks_in_batches(profiles, strategy, model, target_count=4, batch_size=4)
        assert [s.track.id for s in result.tracks] == ["A1", "B1", "A2", "B2"]
        assert [s.contributed_by for s in result.tracks] == ["user-a", "user-b", "user-a", "user-b"]
        assert result.total_tokens == 250
        assert result.fallback_batches == 0
        assert result.tracks[0].reasoning == "fit"

    def test_indices_refer_to_remaining_candidates(self, profiles, strategy):
        """Later batches number only the tracks not yet selected."""
        model = ScriptedModel(
            selections((0, 1), (1, 1), (0, 2), (1, 2)),
            selections((1, 1), (0, 1)),
        )
        result = select_tracks_in_batches(profiles, strategy, model, target_count=6, batch_size=4)
        assert [s.track.id for s in result.tracks] == ["A1", "B1", "A2", "B2", "B3", "A3"]
        assert [s.position for s in result.tracks] == [1, 2, 3, 4, 5, 6]

    def test_continuity_window_in_prompt(self, profiles, strategy):
        model = ScriptedModel(
            selections((0, 1), (1, 1), (0, 2), (1, 2)),
            selections((0, 1), (1, 1)),
        )
        select_tracks_in_batches(profiles, strategy, model, target_count=6, batch_size=4)
        assert "Starting playlist..." in model.prompts[0]
        second = model.prompts[1]
        assert "2. Artist B1 - Track B1" in second
        assert "4. Artist B2 - Track B2" in second
        assert "1. Artist A1 - Track A1" not in second

    def test_out_of_range_index_falls_back(self, profiles, strategy):
        """An invalid index discards the whole answer for that batch."""
        model = ScriptedModel(selections((0, 1), (0, 99)))
        result = select_tracks_in_batches(profiles, strategy, model, target_count=4, batch_size=4)
        assert [s.track.id for s in result.tracks] == ["A1", "B1", "A2", "B2"]
        assert result.fallback_batches == 1

    def test_repeated_pick_counted_once(self, profiles, strategy):
        model = ScriptedModel(selections((0, 1), (0, 1)))
        result = select_tracks_in_batches(profiles, strategy, model, target_count=2, batch_size=2)
        assert [s.track.id for s in result.tracks] == ["A1", "A2"]
        assert result.fallback_batches == 0

    def test_retry_does_not_duplicate_tracks(self, profiles, strategy):
        """A retried batch is committed once."""
        model = ScriptedModel(
            RuntimeError("timeout"),
            selections((0, 1), (1, 1)),
        )
        result = select_tracks_in_batches(
            profiles, strategy, model, target_count=2, batch_size=2, max_retries=1
        )
        assert [s.track.id for s in result.tracks] == ["A1", "B1"]
        assert len(model.prompts) == 2
        assert model.prompts[0] == model.prompts[1]
        assert result.fallback_batches == 0

    def test_target_energy_follows_progression(self, profiles, strategy):
        model = ScriptedModel(selections((0, 1), (1, 1)))
        select_tracks_in_batches(profiles, strategy, model, target_count=10, batch_size=2)
        assert "TARGET ENERGY for next section: warm-up" in model.prompts[0]
        assert "TARGET ENERGY for next section: cool-down" in model.prompts[4]

    def test_no_profiles(self, strategy, failing_model):
        result = select_tracks_in_batches([], strategy, failing_model, target_count=10)
        assert result.tracks == []
        assert failing_model.prompts == []


class TestEnergyStage:
    @pytest.mark.parametrize("batch_index,expected", [(0, "warm-up"), (3, "peak"), (6, "cool-down"), (12, "cool-down")])
    def test_spread_across_stages(self, strategy, batch_index, expected):
        # 55 tracks in batches of 8 -> 7 batches over 5 stages
        assert energy_stage_for_batch(strategy, batch_index, 7) == expected

    def test_empty_progression(self):
        empty = BlendStrategy("mix", [], "round-robin", [], "")
        assert energy_stage_for_batch(empty, 0, 7) == "moderate-energy"


class TestResolveSelections:
    def test_extra_picks_dropped(self, profiles):
        remaining = [p.candidate_tracks for p in profiles]
        picks = resolve_selections(selections((0, 1), (1, 1), (0, 2)), profiles, remaining, 2)
        assert [track.id for track, _, _ in picks] == ["A1", "B1"]

    @pytest.mark.parametrize(
        "content",
        [selections((2, 1)), selections((0, 0)), selections((-1, 1)), "[]", "nope"],
    )
    def test_unusable_answers_raise(self, profiles, content):
        remaining = [p.candidate_tracks for p in profiles]
        with pytest.raises(BatchSelectionError):
            resolve_selections(content, profiles, remaining, 4)


class TestRoundRobinFill:
    def test_skips_exhausted_users(self):
        profiles = [make_profile("a", make_tracks("A", 3)), make_profile("b", make_tracks("B", 1))]
        remaining = [p.candidate_tracks for p in profiles]
        picks, _ = round_robin_fill(profiles, remaining, 10)
        assert [track.id for track, _, _ in picks] == ["A1", "B1", "A2", "A3"]

    def test_returns_next_user(self, profiles):
        remaining = [p.candidate_tracks for p in profiles]
        picks, next_user = round_robin_fill(profiles, remaining, 3, start_user=1)
        assert [track.id for track, _, _ in picks] == ["B1", "A1", "B2"]
        assert next_user == 0
