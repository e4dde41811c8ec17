"""
Blend strategy planning.

One model call turns the participants' profiles into a high-level plan
(mood, energy progression, per-user quotas). Any failure, whether from the
call itself or from an unusable response, yields a deterministic fallback
strategy instead of an error.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

from loguru import logger

from ..tracks.profile import UserMusicProfile
from .client import LanguageModel
from .parsing import ParseFailure, StrategyResponse, parse_strategy

DEFAULT_TARGET_LENGTH = 55
FALLBACK_MOOD = "balanced-mix"
FALLBACK_STAGE = "moderate-energy"
FALLBACK_STAGE_COUNT = 5
FALLBACK_MIXING_STYLE = "round-robin"
FALLBACK_REASONING = "Fallback strategy due to parsing error"

STRATEGY_TEMPERATURE = 0.7
STRATEGY_MAX_TOKENS = 1000


@dataclass(frozen=True)
class BlendStrategy:
    """High-level playlist plan that seeds batch selection."""

    overall_mood: str
    energy_progression: List[str]
    genre_mixing_style: str
    tracks_per_user: List[int]
    reasoning: str
    total_tokens: int = 0
    is_fallback: bool = field(default=False, compare=False)


def equal_quotas(participant_count: int, target_count: int) -> List[int]:
    """Equal integer quota per participant (floor); a lone participant gets everything."""
    if participant_count <= 0:
        return []
    return [target_count // participant_count] * participant_count


def fallback_strategy(participant_count: int, target_count: int = DEFAULT_TARGET_LENGTH) -> BlendStrategy:
    """Deterministic plan used whenever the model cannot provide one."""
    return BlendStrategy(
        overall_mood=FALLBACK_MOOD,
        energy_progression=[FALLBACK_STAGE] * FALLBACK_STAGE_COUNT,
        genre_mixing_style=FALLBACK_MIXING_STYLE,
        tracks_per_user=equal_quotas(participant_count, target_count),
        reasoning=FALLBACK_REASONING,
        total_tokens=0,
        is_fallback=True,
    )


def build_strategy_prompt(
    profiles: Sequence[UserMusicProfile], blend_name: str, target_count: int
) -> str:
    """Build the planning prompt summarizing every participant."""
    quotas = equal_quotas(len(profiles), target_count)
    per_user = quotas[0] if quotas else target_count

    participant_lines = []
    for profile in profiles:
        signature = profile.audio_signature
        genres = ", ".join(profile.top_genres) if profile.top_genres else "unknown"
        participant_lines.append(
            f"User {profile.user_id[:8]}:\n"
            f"- Top genres: {genres}\n"
            f"- Audio signature: {signature.energy}% energy, {signature.valence}% positivity, "
            f"{signature.danceability}% danceability\n"
            f"- Avg tempo: {signature.tempo} BPM\n"
            f"- Available tracks: {profile.track_count}"
        )
    participants = "\n\n".join(participant_lines)

    return f"""You are an expert music curator creating a {target_count}-track playlist called "{blend_name}".

PARTICIPANTS:
{participants}

TASK: Create a cohesive blend strategy

Consider:
1. What's the overall mood/vibe that represents this group?
2. How should energy progress through the playlist? (intro -> build -> peak -> outro)
3. What's the genre mixing approach? (interweave vs sections vs transitions)
4. How many tracks should each user contribute? ({per_user} each roughly)

Response format:
{{
  "overallMood": "energetic-indie-electronic",
  "energyProgression": ["mellow-intro", "building", "peak-energy", "sustained-high", "gentle-outro"],
  "genreMixingStyle": "smooth-transitions",
  "tracksPerUser": [{", ".join(str(q) for q in quotas)}],
  "reasoning": "This group loves energetic indie with electronic elements..."
}}

Return only valid JSON."""


def strategy_from_response(
    parsed: StrategyResponse, participant_count: int, target_count: int, total_tokens: int
) -> BlendStrategy:
    """Fill gaps in a parsed response with the equal-share defaults."""
    quotas = parsed.tracksPerUser
    if (
        quotas is None
        or len(quotas) != participant_count
        or any(q < 0 for q in quotas)
    ):
        quotas = equal_quotas(participant_count, target_count)

    return BlendStrategy(
        overall_mood=parsed.overallMood,
        energy_progression=list(parsed.energyProgression),
        genre_mixing_style=parsed.genreMixingStyle or FALLBACK_MIXING_STYLE,
        tracks_per_user=list(quotas),
        reasoning=parsed.reasoning or "",
        total_tokens=total_tokens,
    )


def create_blend_strategy(
    profiles: Sequence[UserMusicProfile],
    blend_name: str,
    model: LanguageModel,
    target_count: int = DEFAULT_TARGET_LENGTH,
    temperature: float = STRATEGY_TEMPERATURE,
    max_output_tokens: int = STRATEGY_MAX_TOKENS,
) -> BlendStrategy:
    """Plan a blend with one model call, falling back deterministically.

    Never raises: model errors and unparseable output both produce the
    fallback strategy.

    Args:
        profiles: One profile per participant, in participant order
        blend_name: Human-readable playlist name
        model: Language model to consult
        target_count: Desired playlist length

    Returns:
        BlendStrategy (is_fallback=True when the model could not be used)
    """
    prompt = build_strategy_prompt(profiles, blend_name, target_count)

    try:
        completion = model.complete(
            prompt, temperature=temperature, max_output_tokens=max_output_tokens
        )
        parsed = parse_strategy(completion.text)
    except Exception as e:
        logger.warning(f"Strategy model call failed, using fallback strategy: {e}")
        return fallback_strategy(len(profiles), target_count)

    if isinstance(parsed, ParseFailure):
        logger.warning(f"Unusable strategy response ({parsed.reason}), using fallback strategy")
        return fallback_strategy(len(profiles), target_count)

    strategy = strategy_from_response(
        parsed, len(profiles), target_count, completion.total_tokens
    )
    logger.info(
        f"Blend strategy for '{blend_name}': mood={strategy.overall_mood}, "
        f"stages={len(strategy.energy_progression)}, quotas={strategy.tracks_per_user}"
    )
    return strategy
