"""
Blend candidate collection with provider-priority fallback.

The sync collaborator is described by the TrackSource protocol: it hands over
already-synced raw rows per user. Candidates come from the primary provider
first (heavy rotation, then library songs) and are topped up from the
secondary provider.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Set

from loguru import logger

from .models import PRIMARY_PROVIDER, SECONDARY_PROVIDER, CanonicalTrack
from .normalizer import RawTrack, normalize

# Heavy rotation is capped so library songs still get a share
MAX_HEAVY_ROTATION = 15


class TrackSource(Protocol):
    """Read-only access to synced provider rows, keyed by user_id."""

    def get_connected_providers(self, user_id: str) -> Set[str]:
        """Return provider names the user has connected ('apple', 'spotify')."""
        ...

    def get_heavy_rotation(self, user_id: str, limit: int) -> List[RawTrack]:
        """Return up to `limit` primary-provider heavy-rotation rows."""
        ...

    def get_library_songs(self, user_id: str, limit: int) -> List[RawTrack]:
        """Return up to `limit` primary-provider library-song rows."""
        ...

    def get_top_tracks(self, user_id: str, limit: int) -> List[RawTrack]:
        """Return up to `limit` secondary-provider top-track rows."""
        ...


def _list_field(user_data: Dict[str, Any], key: str, user_id: str) -> List[Any]:
    value = user_data.get(key, [])
    if not isinstance(value, list):
        raise ValueError(f"user '{user_id}': '{key}' must be a list")
    return list(value)


@dataclass
class InMemoryTrackSource:
    """TrackSource backed by plain dictionaries (CLI input, tests)."""

    connections: Dict[str, Set[str]] = field(default_factory=dict)
    heavy_rotation: Dict[str, List[RawTrack]] = field(default_factory=dict)
    library_songs: Dict[str, List[RawTrack]] = field(default_factory=dict)
    top_tracks: Dict[str, List[RawTrack]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryTrackSource":
        """Build from {"users": {user_id: {"connections": [...], "heavy_rotation": [...], ...}}}.

        Raises:
            ValueError: If the users table or a user entry has the wrong shape
        """
        users = data.get("users", {})
        if not isinstance(users, dict):
            raise ValueError("'users' must be an object keyed by user id")

        source = cls()
        for user_id, user_data in users.items():
            if not isinstance(user_data, dict):
                raise ValueError(f"user '{user_id}' must be an object")
            source.connections[user_id] = set(_list_field(user_data, "connections", user_id))
            source.heavy_rotation[user_id] = _list_field(user_data, "heavy_rotation", user_id)
            source.library_songs[user_id] = _list_field(user_data, "library_songs", user_id)
            source.top_tracks[user_id] = _list_field(user_data, "top_tracks", user_id)
        return source

    def get_connected_providers(self, user_id: str) -> Set[str]:
        return set(self.connections.get(user_id, set()))

    def get_heavy_rotation(self, user_id: str, limit: int) -> List[RawTrack]:
        return self.heavy_rotation.get(user_id, [])[: max(limit, 0)]

    def get_library_songs(self, user_id: str, limit: int) -> List[RawTrack]:
        return self.library_songs.get(user_id, [])[: max(limit, 0)]

    def get_top_tracks(self, user_id: str, limit: int) -> List[RawTrack]:
        return self.top_tracks.get(user_id, [])[: max(limit, 0)]


def _normalize_rows(rows: List[RawTrack], provider: str) -> List[CanonicalTrack]:
    tracks = []
    for row in rows:
        track = normalize(row, provider)
        if track is not None:
            tracks.append(track)
    return tracks


def get_primary_tracks(source: TrackSource, user_id: str, count: int) -> List[CanonicalTrack]:
    """Get primary-provider tracks: heavy rotation first, then library songs."""
    if count <= 0:
        return []

    heavy_rows = source.get_heavy_rotation(user_id, min(count, MAX_HEAVY_ROTATION))
    tracks = _normalize_rows(heavy_rows, PRIMARY_PROVIDER)
    logger.debug(
        f"User {user_id[:8]}: {len(tracks)}/{len(heavy_rows)} usable heavy rotation tracks"
    )

    if len(tracks) < count:
        library_rows = source.get_library_songs(user_id, count - len(tracks))
        library_tracks = _normalize_rows(library_rows, PRIMARY_PROVIDER)
        logger.debug(
            f"User {user_id[:8]}: {len(library_tracks)}/{len(library_rows)} usable library songs"
        )
        tracks.extend(library_tracks)

    return tracks


def get_secondary_tracks(source: TrackSource, user_id: str, count: int) -> List[CanonicalTrack]:
    """Get secondary-provider top tracks converted to the canonical scale."""
    if count <= 0:
        return []

    rows = source.get_top_tracks(user_id, count)
    tracks = _normalize_rows(rows, SECONDARY_PROVIDER)
    logger.debug(f"User {user_id[:8]}: {len(tracks)}/{len(rows)} usable Spotify tracks")
    return tracks


def get_blend_candidate_tracks_for_user(
    source: TrackSource, user_id: str, target_count: int = 30
) -> List[CanonicalTrack]:
    """Get up to target_count canonical candidate tracks for a user.

    Prioritizes the primary provider, falls back to the secondary provider.
    Never pads with synthetic entries.

    Args:
        source: Sync collaborator holding the user's raw rows
        user_id: User to collect tracks for
        target_count: Maximum number of tracks to return

    Returns:
        Candidate tracks, most preferred first
    """
    connections = source.get_connected_providers(user_id)
    has_primary = PRIMARY_PROVIDER in connections
    has_secondary = SECONDARY_PROVIDER in connections
    logger.info(
        f"Collecting candidates for user {user_id[:8]} "
        f"(apple={has_primary}, spotify={has_secondary}, target={target_count})"
    )

    candidates: List[CanonicalTrack] = []

    if has_primary and len(candidates) < target_count:
        candidates.extend(get_primary_tracks(source, user_id, target_count - len(candidates)))

    if has_secondary and len(candidates) < target_count:
        candidates.extend(get_secondary_tracks(source, user_id, target_count - len(candidates)))

    logger.info(f"User {user_id[:8]} final candidate count: {min(len(candidates), target_count)}")
    return candidates[:target_count]
