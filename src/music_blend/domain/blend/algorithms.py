"""
Deterministic blend algorithms.

Pure functions over per-user ranked track lists. All of them treat
max_tracks as a hard upper bound and only drop duplicates when
remove_duplicates is set. Duplicates are detected by ISRC, falling back to
a lowercased "title-artist" key.
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Literal, Sequence, Set

from loguru import logger

from ..tracks.models import BlendedTrack, BlendInput

BlendAlgorithmName = Literal["interleave", "weighted", "discovery"]

# Diversity bonus for an artist not yet in the mix, and its decay per repeat
DIVERSITY_BONUS = 0.3
DIVERSITY_DECAY = 0.1


@dataclass(frozen=True)
class BlendOptions:
    """Options shared by all blend algorithms."""

    max_tracks: int
    algorithm: str = "interleave"
    remove_duplicates: bool = True
    diversity_boost: bool = False


def interleave(inputs: Sequence[BlendInput], options: BlendOptions) -> List[BlendedTrack]:
    """Round-robin across users, one track per user per round.

    Round i offers each user's i-th track. Users whose list is exhausted are
    skipped; a duplicate skipped in a round still uses up that user's turn.
    """
    result: List[BlendedTrack] = []
    seen: Set[str] = set()

    if not inputs:
        return result

    rounds = max(len(blend_input.tracks) for blend_input in inputs)

    for index in range(rounds):
        if len(result) >= options.max_tracks:
            break
        for blend_input in inputs:
            if len(result) >= options.max_tracks:
                break
            if index >= len(blend_input.tracks):
                continue

            track = blend_input.tracks[index]
            key = track.dedupe_key
            if options.remove_duplicates and key in seen:
                continue

            seen.add(key)
            result.append(
                BlendedTrack(
                    track=track,
                    contributed_by=blend_input.user_id,
                    original_rank=index + 1,
                )
            )

    return result


def compute_quotas(inputs: Sequence[BlendInput], max_tracks: int) -> List[int]:
    """Per-user quotas: floor(max_tracks * weight / total_weight).

    The floored remainder is not redistributed, so quotas may sum to less
    than max_tracks.
    """
    total_weight = sum(blend_input.effective_weight for blend_input in inputs)
    if total_weight <= 0:
        return [0 for _ in inputs]
    return [
        math.floor(max_tracks * (blend_input.effective_weight / total_weight))
        for blend_input in inputs
    ]


def weighted(inputs: Sequence[BlendInput], options: BlendOptions) -> List[BlendedTrack]:
    """Fill each user's weight-proportional quota in alternating passes.

    Each pass offers one unconsumed track per user. A duplicate consumes the
    track without counting toward the quota. Stops at max_tracks or when a
    whole pass adds nothing.
    """
    result: List[BlendedTrack] = []
    seen: Set[str] = set()

    quotas = compute_quotas(inputs, options.max_tracks)
    cursors = [0 for _ in inputs]  # Next unconsumed index per user
    added = [0 for _ in inputs]  # Tracks counted toward each quota

    logger.debug(f"Weighted quotas: {quotas} (max_tracks={options.max_tracks})")

    while len(result) < options.max_tracks:
        added_in_pass = False

        for i, blend_input in enumerate(inputs):
            if len(result) >= options.max_tracks:
                break
            if added[i] >= quotas[i] or cursors[i] >= len(blend_input.tracks):
                continue

            track = blend_input.tracks[cursors[i]]
            rank = cursors[i] + 1
            cursors[i] += 1

            key = track.dedupe_key
            if options.remove_duplicates and key in seen:
                continue

            seen.add(key)
            result.append(
                BlendedTrack(track=track, contributed_by=blend_input.user_id, original_rank=rank)
            )
            added[i] += 1
            added_in_pass = True

        if not added_in_pass:
            break

    return result


def diversity_score(prior_occurrences: int) -> float:
    """Bonus for artist novelty: 0.3 for a new artist, minus 0.1 per repeat, floored at 0."""
    if prior_occurrences == 0:
        return DIVERSITY_BONUS
    return max(0.0, DIVERSITY_BONUS - prior_occurrences * DIVERSITY_DECAY)


def discovery(inputs: Sequence[BlendInput], options: BlendOptions) -> List[BlendedTrack]:
    """Rank tracks by discoverability across all users.

    rank score = (index + 1) / user track count, so deeper cuts score higher.
    With diversity_boost, each track also gets a novelty bonus based on how
    many earlier candidates share its artist. The pooled candidates are
    stably sorted by descending score, de-duplicated and truncated.
    """
    scored: List[tuple] = []  # (score, BlendedTrack)
    artist_counts: Dict[str, int] = {}

    for blend_input in inputs:
        total = len(blend_input.tracks)
        for index, track in enumerate(blend_input.tracks):
            score = (index + 1) / total

            artist = track.artist.lower()
            if options.diversity_boost:
                score += diversity_score(artist_counts.get(artist, 0))
            artist_counts[artist] = artist_counts.get(artist, 0) + 1

            scored.append(
                (
                    score,
                    BlendedTrack(
                        track=track,
                        contributed_by=blend_input.user_id,
                        original_rank=index + 1,
                    ),
                )
            )

    # sorted() is stable, so equal scores keep pool order
    ranked = sorted(scored, key=lambda item: item[0], reverse=True)

    result: List[BlendedTrack] = []
    seen: Set[str] = set()
    for _, blended in ranked:
        if len(result) >= options.max_tracks:
            break
        key = blended.track.dedupe_key
        if options.remove_duplicates and key in seen:
            continue
        seen.add(key)
        result.append(blended)

    return result


ALGORITHMS: Dict[str, Callable[[Sequence[BlendInput], BlendOptions], List[BlendedTrack]]] = {
    "interleave": interleave,
    "weighted": weighted,
    "discovery": discovery,
}


def blend(inputs: Sequence[BlendInput], options: BlendOptions) -> List[BlendedTrack]:
    """Dispatch to the algorithm named in options (interleave when unknown).

    Args:
        inputs: Per-user ranked tracks, in contributor order
        options: Blend options

    Returns:
        Merged, ordered list of at most options.max_tracks tracks
    """
    if not inputs:
        return []

    algorithm = ALGORITHMS.get(options.algorithm)
    if algorithm is None:
        logger.warning(f"Unknown blend algorithm '{options.algorithm}', using interleave")
        algorithm = interleave

    result = algorithm(inputs, options)
    logger.info(
        f"Blended {len(result)} tracks from {len(inputs)} users "
        f"(algorithm={algorithm.__name__}, max_tracks={options.max_tracks})"
    )
    return result
