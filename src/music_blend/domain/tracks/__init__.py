"""Tracks domain - canonical track model and provider normalization.

This domain handles:
- The canonical track model shared by all blend algorithms
- Normalizing Apple Music and Spotify rows
- Collecting blend candidates with provider-priority fallback
- Summarizing users into music profiles
"""

from .collection import (
    InMemoryTrackSource,
    TrackSource,
    get_blend_candidate_tracks_for_user,
)
from .models import (
    PRIMARY_PROVIDER,
    SECONDARY_PROVIDER,
    SOURCE_PROVIDERS,
    BlendedTrack,
    BlendInput,
    CanonicalTrack,
    SourceProvider,
)
from .normalizer import normalize, normalize_apple_track, normalize_spotify_track
from .profile import (
    AudioSignature,
    UserMusicProfile,
    build_user_music_profile,
    compute_audio_signature,
    get_top_genres,
    get_user_music_profile,
)

__all__ = [
    "InMemoryTrackSource",
    "TrackSource",
    "get_blend_candidate_tracks_for_user",
    "PRIMARY_PROVIDER",
    "SECONDARY_PROVIDER",
    "SOURCE_PROVIDERS",
    "BlendedTrack",
    "BlendInput",
    "CanonicalTrack",
    "SourceProvider",
    "normalize",
    "normalize_apple_track",
    "normalize_spotify_track",
    "AudioSignature",
    "UserMusicProfile",
    "build_user_music_profile",
    "compute_audio_signature",
    "get_top_genres",
    "get_user_music_profile",
]
