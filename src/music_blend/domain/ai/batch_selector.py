"""
Batched track selection guided by a blend strategy.

The playlist is filled in fixed-size batches. Each batch asks the model to
pick concrete tracks from every participant's remaining candidates; a batch
whose call fails or whose answer is unusable is filled by a deterministic
round-robin instead. Batches run strictly in order because each prompt shows
the most recently accepted tracks.
"""

import math
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from loguru import logger

from ..tracks.models import CanonicalTrack
from ..tracks.profile import UserMusicProfile
from .client import LanguageModel
from .parsing import ParseFailure, parse_selections
from .strategy import DEFAULT_TARGET_LENGTH, BlendStrategy

DEFAULT_BATCH_SIZE = 8
CONTINUITY_WINDOW = 3
FALLBACK_REASONING = "round-robin fallback"

BATCH_TEMPERATURE = 0.5
BATCH_MAX_TOKENS = 1500


class BatchSelectionError(Exception):
    """A batch's model answer could not be turned into tracks."""

    pass


@dataclass(frozen=True)
class SelectedTrack:
    """A track accepted into the playlist."""

    track: CanonicalTrack
    position: int  # 1-based
    contributed_by: str
    reasoning: str = ""


@dataclass
class BatchSelectionResult:
    """Outcome of the selecting stage."""

    tracks: List[SelectedTrack] = field(default_factory=list)
    total_tokens: int = 0
    batches: int = 0
    fallback_batches: int = 0


# (track, contributing user_id, reasoning)
Pick = Tuple[CanonicalTrack, str, str]


def energy_stage_for_batch(strategy: BlendStrategy, batch_index: int, total_batches: int) -> str:
    """Map a batch index onto the strategy's energy progression.

    Batches are spread evenly across stages; batches beyond the planned count
    stay on the last stage.
    """
    stages = strategy.energy_progression
    if not stages:
        return "moderate-energy"
    if total_batches <= 0:
        return stages[0]
    stage_index = math.floor(batch_index / (total_batches / len(stages)))
    return stages[min(stage_index, len(stages) - 1)]


def remaining_candidates(
    profiles: Sequence[UserMusicProfile], selected_ids: Set[str]
) -> List[List[CanonicalTrack]]:
    """Each user's candidates minus tracks already in the playlist."""
    return [
        [track for track in profile.candidate_tracks if track.id not in selected_ids]
        for profile in profiles
    ]


def _format_energy(track: CanonicalTrack) -> str:
    if track.energy is None:
        return "unknown energy"
    return f"{track.energy}% energy"


def _format_track_line(track: CanonicalTrack) -> str:
    energy = track.energy if track.energy is not None else 50
    return f"{track.artist} - {track.title} [{energy}% energy, {track.genre or 'unknown'}]"


def build_batch_prompt(
    profiles: Sequence[UserMusicProfile],
    strategy: BlendStrategy,
    selected: Sequence[SelectedTrack],
    remaining: Sequence[Sequence[CanonicalTrack]],
    tracks_needed: int,
    target_energy: str,
    continuity_window: int = CONTINUITY_WINDOW,
) -> str:
    """Build the prompt for one batch."""
    recent = list(selected[-continuity_window:]) if continuity_window > 0 else []
    if recent:
        current_lines = "\n".join(
            f"{item.position}. {item.track.artist} - {item.track.title} "
            f"[{item.track.source_provider}, {_format_energy(item.track)}]"
            for item in recent
        )
    else:
        current_lines = "Starting playlist..."

    per_user = math.ceil(tracks_needed / len(profiles)) if profiles else tracks_needed

    user_sections = []
    for profile, candidates in zip(profiles, remaining):
        shown = candidates[:per_user]
        if shown:
            listing = "\n".join(
                f"{i}. {_format_track_line(track)}" for i, track in enumerate(shown, 1)
            )
        else:
            listing = "(no tracks left)"
        user_sections.append(
            f"User {profile.user_id[:8]} candidates (pick {per_user}):\n{listing}"
        )

    return f"""You are continuing to build the "{strategy.overall_mood}" playlist.

CURRENT PLAYLIST (last {continuity_window} tracks):
{current_lines}

TARGET ENERGY for next section: {target_energy}

SELECT NEXT {tracks_needed} TRACKS (round-robin from users, in user order above, userIndex starts at 0):
{chr(10).join(user_sections)}

Return ONLY a JSON array of track selections:
[
  {{"userIndex": 0, "trackIndex": 1, "reasoning": "Perfect energy match"}},
  {{"userIndex": 1, "trackIndex": 2, "reasoning": "Smooth transition"}}
]

Select exactly {tracks_needed} tracks total."""


def resolve_selections(
    content: str,
    profiles: Sequence[UserMusicProfile],
    remaining: Sequence[Sequence[CanonicalTrack]],
    tracks_needed: int,
) -> List[Pick]:
    """Turn a model answer into picks against the remaining candidates.

    Repeated picks are ignored and extra picks beyond tracks_needed dropped.

    Raises:
        BatchSelectionError: Unparseable answer, an out-of-range index, or no picks
    """
    parsed = parse_selections(content)
    if isinstance(parsed, ParseFailure):
        raise BatchSelectionError(parsed.reason)

    picks: List[Pick] = []
    chosen_ids: Set[str] = set()

    for selection in parsed:
        if len(picks) >= tracks_needed:
            break

        if not 0 <= selection.userIndex < len(profiles):
            raise BatchSelectionError(f"userIndex {selection.userIndex} out of range")

        candidates = remaining[selection.userIndex]
        if not 1 <= selection.trackIndex <= len(candidates):
            raise BatchSelectionError(
                f"trackIndex {selection.trackIndex} out of range for user {selection.userIndex}"
            )

        track = candidates[selection.trackIndex - 1]
        if track.id in chosen_ids:
            continue

        chosen_ids.add(track.id)
        picks.append((track, profiles[selection.userIndex].user_id, selection.reasoning))

    if not picks:
        raise BatchSelectionError("model selected no tracks")

    return picks


def round_robin_fill(
    profiles: Sequence[UserMusicProfile],
    remaining: Sequence[Sequence[CanonicalTrack]],
    tracks_needed: int,
    start_user: int = 0,
) -> Tuple[List[Pick], int]:
    """Deterministic fallback: take each user's next remaining candidate in turn.

    Exhausted users are skipped. Stops when tracks_needed picks are made or
    every user is exhausted.

    Returns:
        (picks, next user index for the rotation)
    """
    picks: List[Pick] = []
    user_count = len(profiles)
    if user_count == 0:
        return picks, 0

    taken: Set[str] = set()
    cursors = [0] * user_count
    user = start_user % user_count
    idle_turns = 0

    while len(picks) < tracks_needed and idle_turns < user_count:
        candidates = remaining[user]
        while cursors[user] < len(candidates) and candidates[cursors[user]].id in taken:
            cursors[user] += 1

        if cursors[user] < len(candidates):
            track = candidates[cursors[user]]
            cursors[user] += 1
            taken.add(track.id)
            picks.append((track, profiles[user].user_id, FALLBACK_REASONING))
            idle_turns = 0
        else:
            idle_turns += 1

        user = (user + 1) % user_count

    return picks, user


def _select_with_model(
    model: LanguageModel,
    prompt: str,
    profiles: Sequence[UserMusicProfile],
    remaining: Sequence[Sequence[CanonicalTrack]],
    tracks_needed: int,
    temperature: float,
    max_output_tokens: int,
) -> Tuple[List[Pick], int]:
    completion = model.complete(prompt, temperature=temperature, max_output_tokens=max_output_tokens)
    picks = resolve_selections(completion.text, profiles, remaining, tracks_needed)
    return picks, completion.total_tokens


def select_tracks_in_batches(
    profiles: Sequence[UserMusicProfile],
    strategy: BlendStrategy,
    model: LanguageModel,
    target_count: int = DEFAULT_TARGET_LENGTH,
    batch_size: int = DEFAULT_BATCH_SIZE,
    continuity_window: int = CONTINUITY_WINDOW,
    max_retries: int = 0,
    retry_backoff_seconds: float = 0.0,
    temperature: float = BATCH_TEMPERATURE,
    max_output_tokens: int = BATCH_MAX_TOKENS,
) -> BatchSelectionResult:
    """Fill the playlist batch by batch.

    A batch is committed only once it has fully resolved, so retries never
    append the same tracks twice. The run ends at target_count or when a
    batch adds nothing (every candidate used); a short playlist is a valid
    outcome.

    Args:
        profiles: Participants, in order; userIndex refers to this order
        strategy: Plan providing the mood and energy progression
        model: Language model to consult per batch
        target_count: Desired playlist length
        batch_size: Tracks requested per batch
        continuity_window: Recent tracks shown for continuity
        max_retries: Extra model attempts per batch before falling back
        retry_backoff_seconds: Base delay, doubled after each failed attempt

    Returns:
        BatchSelectionResult with positioned tracks and token usage
    """
    result = BatchSelectionResult()
    if not profiles or target_count <= 0:
        return result

    selected_ids: Set[str] = set()
    total_batches = math.ceil(target_count / batch_size)
    rotation = 0
    batch_index = 0

    while len(result.tracks) < target_count:
        tracks_needed = min(batch_size, target_count - len(result.tracks))
        remaining = remaining_candidates(profiles, selected_ids)
        if not any(remaining):
            logger.info("All candidates used, stopping batch selection")
            break

        target_energy = energy_stage_for_batch(strategy, batch_index, total_batches)
        prompt = build_batch_prompt(
            profiles,
            strategy,
            result.tracks,
            remaining,
            tracks_needed,
            target_energy,
            continuity_window,
        )

        picks: Optional[List[Pick]] = None
        for attempt in range(max_retries + 1):
            try:
                picks, tokens = _select_with_model(
                    model, prompt, profiles, remaining, tracks_needed, temperature, max_output_tokens
                )
                result.total_tokens += tokens
                break
            except Exception as e:
                logger.warning(
                    f"Batch {batch_index + 1} selection failed "
                    f"(attempt {attempt + 1}/{max_retries + 1}): {e}"
                )
                if attempt < max_retries and retry_backoff_seconds > 0:
                    time.sleep(retry_backoff_seconds * (2**attempt))

        if picks is None:
            picks, rotation = round_robin_fill(profiles, remaining, tracks_needed, rotation)
            result.fallback_batches += 1

        if not picks:
            break

        for track, user_id, reasoning in picks:
            selected_ids.add(track.id)
            result.tracks.append(
                SelectedTrack(
                    track=track,
                    position=len(result.tracks) + 1,
                    contributed_by=user_id,
                    reasoning=reasoning,
                )
            )

        result.batches += 1
        logger.debug(
            f"Batch {batch_index + 1}: +{len(picks)} tracks "
            f"({len(result.tracks)}/{target_count}, energy={target_energy})"
        )
        batch_index += 1

    logger.info(
        f"Selected {len(result.tracks)}/{target_count} tracks in {result.batches} batches "
        f"({result.fallback_batches} fallback)"
    )
    return result
