"""Tests for blend strategy planning."""

import pytest

from helpers import ScriptedModel, make_profile, make_tracks

from music_blend.domain.ai.strategy import (
    FALLBACK_REASONING,
    build_strategy_prompt,
    create_blend_strategy,
    equal_quotas,
    fallback_strategy,
)


@pytest.fixture
def profiles() -> list:
    return [
        make_profile("alice-0001-uuid", make_tracks("A", 10)),
        make_profile("bob-0002-uuid", make_tracks("B", 10)),
    ]


class TestFallbackStrategy:
    """Tests for fallback_strategy."""

    def test_shape(self):
        strategy = fallback_strategy(2, 55)
        assert strategy.overall_mood == "balanced-mix"
        assert strategy.energy_progression == ["moderate-energy"] * 5
        assert strategy.genre_mixing_style == "round-robin"
        assert strategy.tracks_per_user == [27, 27]
        assert strategy.reasoning == FALLBACK_REASONING
        assert strategy.is_fallback

    @pytest.mark.parametrize("participants", [1, 2, 3, 4, 7])
    def test_quotas_equal_and_within_target(self, participants):
        quotas = equal_quotas(participants, 55)
        assert len(set(quotas)) == 1
        assert sum(quotas) <= 55

    def test_single_participant_gets_everything(self):
        assert equal_quotas(1, 55) == [55]


class TestCreateBlendStrategy:
    """Tests for create_blend_strategy."""

    def test_model_error_yields_fallback(self, profiles, failing_model):
        """A raising model never propagates; the fallback is returned."""
        strategy = create_blend_strategy(profiles, "Friday Mix", failing_model, 55)
        assert strategy.is_fallback
        assert strategy.reasoning == FALLBACK_REASONING
        assert strategy.tracks_per_user == [27, 27]
        assert len(failing_model.prompts) == 1

    def test_malformed_response_yields_fallback(self, profiles):
        model = ScriptedModel("Sure! Here's a great plan for your playlist.")
        strategy = create_blend_strategy(profiles, "Friday Mix", model, 55)
        assert strategy.is_fallback
        assert strategy.overall_mood == "balanced-mix"

    def test_valid_fenced_response(self, profiles):
        model = ScriptedModel(
            '```json\n{"overallMood": "sunny-indie", '
            '"energyProgression": ["warm-up", "peak", "cool-down"], '
            '"genreMixingStyle": "interweave", "tracksPerUser": [30, 25], '
            '"reasoning": "Both love indie."}\n```',
            tokens=420,
        )
        strategy = create_blend_strategy(profiles, "Friday Mix", model, 55)
        assert not strategy.is_fallback
        assert strategy.overall_mood == "sunny-indie"
        assert strategy.energy_progression == ["warm-up", "peak", "cool-down"]
        assert strategy.tracks_per_user == [30, 25]
        assert strategy.total_tokens == 420

    def test_missing_optional_fields_defaulted(self, profiles):
        model = ScriptedModel(
            '{"overallMood": "chill", "energyProgression": ["low"], "tracksPerUser": [55]}'
        )
        strategy = create_blend_strategy(profiles, "Chill", model, 55)
        assert not strategy.is_fallback
        assert strategy.genre_mixing_style == "round-robin"
        assert strategy.reasoning == ""
        # Wrong-sized quotas are replaced by equal shares
        assert strategy.tracks_per_user == [27, 27]


class TestBuildStrategyPrompt:
    def test_summarizes_participants(self, profiles):
        prompt = build_strategy_prompt(profiles, "Friday Mix", 40)
        assert '40-track playlist called "Friday Mix"' in prompt
        assert "User alice-00" in prompt
        assert "User bob-0002" in prompt
        assert "Top genres: unknown" in prompt
        assert "50% energy" in prompt
        assert "Available tracks: 10" in prompt
        assert "[20, 20]" in prompt
