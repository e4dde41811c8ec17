"""
AI-curated blend generation: PLANNING -> SELECTING -> DONE.

Builds profiles for every participant, plans a strategy, then fills the
playlist in batches. The only condition that aborts a run is having no
candidate tracks at all; everything else degrades to the deterministic
fallbacks.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from music_blend.core.config import Config

from ..tracks.collection import TrackSource
from ..tracks.profile import UserMusicProfile, get_user_music_profile
from .batch_selector import SelectedTrack, select_tracks_in_batches
from .client import LanguageModel
from .strategy import DEFAULT_TARGET_LENGTH, BlendStrategy, create_blend_strategy

# Cost estimation budget (tokens)
STRATEGY_TOKEN_BUDGET = 1000
BATCH_TOKEN_BUDGET = 1500
ESTIMATE_BATCH_SIZE = 8
TOKENS_PER_TRACK_ESTIMATE = 50
DEFAULT_COST_PER_1K_TOKENS = 0.06

INSUFFICIENT_DATA_MESSAGE = (
    "No valid tracks found for blend generation. Users need more synced music data."
)


class InsufficientDataError(ValueError):
    """No participant has any usable candidate track."""

    pass


@dataclass
class BlendGenerationResult:
    """Everything the persistence collaborator needs to store a blend."""

    tracks: List[Dict[str, Any]] = field(default_factory=list)
    reasoning: str = ""
    total_tokens: int = 0
    estimated_cost: float = 0.0
    target_length: int = DEFAULT_TARGET_LENGTH
    strategy: Optional[BlendStrategy] = None

    @property
    def is_complete(self) -> bool:
        """False when candidates ran out before target_length was reached."""
        return len(self.tracks) == self.target_length


def estimate_blend_generation_cost(
    participant_count: int,
    target_length: int = DEFAULT_TARGET_LENGTH,
    cost_per_1k_tokens: float = DEFAULT_COST_PER_1K_TOKENS,
) -> float:
    """Estimate the monetary cost of one generation run without calling any API.

    One strategy call plus one call per 8-track batch, each at a fixed token
    budget. Participant count does not change the budget.

    Examples:
        >>> round(estimate_blend_generation_cost(2), 4)
        0.69
    """
    if participant_count <= 0 or target_length <= 0:
        return 0.0
    batch_count = math.ceil(target_length / ESTIMATE_BATCH_SIZE)
    total_tokens = STRATEGY_TOKEN_BUDGET + batch_count * BATCH_TOKEN_BUDGET
    return tokens_to_cost(total_tokens, cost_per_1k_tokens)


def tokens_to_cost(total_tokens: int, cost_per_1k_tokens: float = DEFAULT_COST_PER_1K_TOKENS) -> float:
    """Convert a token count to USD."""
    return (total_tokens / 1000) * cost_per_1k_tokens


def to_persistence_records(selected: Sequence[SelectedTrack]) -> List[Dict[str, Any]]:
    """Flatten selected tracks into rows for the persistence collaborator."""
    records = []
    for item in selected:
        track = item.track
        records.append(
            {
                "position": item.position,
                "track_id": track.id,
                "title": track.title,
                "artist": track.artist,
                "album": track.album,
                "artwork_url": track.artwork_url,
                "duration_ms": track.duration_ms,
                "isrc": track.isrc,
                "source_provider": track.source_provider,
                "contributed_by": item.contributed_by,
                "energy": track.energy,
                "valence": track.valence,
                "danceability": track.danceability,
                "tempo": track.tempo,
                "genre": track.genre,
            }
        )
    return records


def ensure_candidates(profiles: Sequence[UserMusicProfile]) -> None:
    """Reject a run where nobody has a single usable candidate.

    Raises:
        InsufficientDataError: If all participants' candidate lists are empty
    """
    if not any(profile.candidate_tracks for profile in profiles):
        raise InsufficientDataError(INSUFFICIENT_DATA_MESSAGE)


def generate_blend_from_profiles(
    profiles: Sequence[UserMusicProfile],
    blend_name: str,
    model: LanguageModel,
    target_length: int = DEFAULT_TARGET_LENGTH,
    config: Optional[Config] = None,
) -> BlendGenerationResult:
    """Run planning and batch selection over prepared profiles.

    Raises:
        InsufficientDataError: If no profile has candidate tracks
    """
    config = config or Config()
    ensure_candidates(profiles)

    logger.info(
        f"Generating '{blend_name}' for {len(profiles)} participants (target={target_length})"
    )

    strategy = create_blend_strategy(
        profiles,
        blend_name,
        model,
        target_count=target_length,
        temperature=config.ai.strategy_temperature,
        max_output_tokens=config.ai.strategy_max_tokens,
    )

    selection = select_tracks_in_batches(
        profiles,
        strategy,
        model,
        target_count=target_length,
        batch_size=config.blend.batch_size,
        continuity_window=config.blend.continuity_window,
        max_retries=config.blend.max_batch_retries,
        retry_backoff_seconds=config.blend.retry_backoff_seconds,
        temperature=config.ai.batch_temperature,
        max_output_tokens=config.ai.batch_max_tokens,
    )

    # Batches that fell back report no usage; estimate per track instead
    batch_tokens = selection.total_tokens or len(selection.tracks) * TOKENS_PER_TRACK_ESTIMATE
    total_tokens = strategy.total_tokens + batch_tokens

    result = BlendGenerationResult(
        tracks=to_persistence_records(selection.tracks),
        reasoning=strategy.reasoning,
        total_tokens=total_tokens,
        estimated_cost=tokens_to_cost(total_tokens, config.ai.cost_per_1k_tokens),
        target_length=target_length,
        strategy=strategy,
    )

    if not result.is_complete:
        logger.warning(
            f"Blend '{blend_name}' is short: {len(result.tracks)}/{target_length} tracks"
        )
    logger.info(
        f"Generated {len(result.tracks)} tracks, using ~{total_tokens} tokens "
        f"(${result.estimated_cost:.4f})"
    )
    return result


def generate_blend_with_llm(
    source: TrackSource,
    participant_user_ids: Sequence[str],
    blend_name: str,
    model: LanguageModel,
    target_length: int = DEFAULT_TARGET_LENGTH,
    config: Optional[Config] = None,
) -> BlendGenerationResult:
    """Generate an AI-curated blend for the given participants.

    Args:
        source: Sync collaborator holding each participant's raw rows
        participant_user_ids: Participants, in order
        blend_name: Human-readable playlist name
        model: Language model for planning and batch selection
        target_length: Desired playlist length
        config: Optional configuration (defaults when None)

    Returns:
        BlendGenerationResult; may hold fewer than target_length tracks

    Raises:
        InsufficientDataError: If no participant has candidate tracks
    """
    config = config or Config()

    profiles = [
        get_user_music_profile(
            source,
            user_id,
            pool_size=config.blend.candidate_pool_size,
            candidate_limit=config.blend.candidate_context_size,
        )
        for user_id in participant_user_ids
    ]

    return generate_blend_from_profiles(profiles, blend_name, model, target_length, config)
