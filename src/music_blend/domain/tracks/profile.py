"""
User music profiles - aggregate taste summaries used as LLM context.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import List, Sequence

from .collection import TrackSource, get_blend_candidate_tracks_for_user
from .models import CanonicalTrack

MAX_TOP_GENRES = 5


@dataclass(frozen=True)
class AudioSignature:
    """Average audio features of a user's tracks (0-100 scale, tempo in BPM)."""

    energy: int = 50
    valence: int = 50
    danceability: int = 50
    tempo: int = 120


NEUTRAL_SIGNATURE = AudioSignature()


@dataclass(frozen=True)
class UserMusicProfile:
    """Ephemeral per-user summary; built on demand for one generation run."""

    user_id: str
    top_genres: List[str] = field(default_factory=list)
    audio_signature: AudioSignature = NEUTRAL_SIGNATURE
    track_count: int = 0
    candidate_tracks: List[CanonicalTrack] = field(default_factory=list)


def get_top_genres(tracks: Sequence[CanonicalTrack], limit: int = MAX_TOP_GENRES) -> List[str]:
    """Most frequent genres first; ties keep first-seen order."""
    counts = Counter(t.genre for t in tracks if t.genre)
    return [genre for genre, _ in counts.most_common(limit)]


def compute_audio_signature(tracks: Sequence[CanonicalTrack]) -> AudioSignature:
    """Average audio features over tracks that carry energy, valence and danceability.

    Tempo is averaged over those tracks that also report a tempo. Returns the
    neutral signature when no track has audio-feature data.
    """
    featured = [
        t
        for t in tracks
        if t.energy is not None and t.valence is not None and t.danceability is not None
    ]
    if not featured:
        return NEUTRAL_SIGNATURE

    count = len(featured)
    tempos = [t.tempo for t in featured if t.tempo is not None]

    return AudioSignature(
        energy=round(sum(t.energy for t in featured) / count),
        valence=round(sum(t.valence for t in featured) / count),
        danceability=round(sum(t.danceability for t in featured) / count),
        tempo=round(sum(tempos) / len(tempos)) if tempos else NEUTRAL_SIGNATURE.tempo,
    )


def build_user_music_profile(
    user_id: str, tracks: Sequence[CanonicalTrack], candidate_limit: int = 30
) -> UserMusicProfile:
    """Build a profile from already-collected canonical tracks."""
    return UserMusicProfile(
        user_id=user_id,
        top_genres=get_top_genres(tracks),
        audio_signature=compute_audio_signature(tracks),
        track_count=len(tracks),
        candidate_tracks=list(tracks[:candidate_limit]),
    )


def get_user_music_profile(
    source: TrackSource,
    user_id: str,
    pool_size: int = 50,
    candidate_limit: int = 30,
) -> UserMusicProfile:
    """Collect a user's candidates and summarize them for the planner."""
    tracks = get_blend_candidate_tracks_for_user(source, user_id, pool_size)
    return build_user_music_profile(user_id, tracks, candidate_limit)
