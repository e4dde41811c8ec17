"""
Track normalization - provider rows to CanonicalTrack.

Each provider has one normalizer function. Rows missing title, artist or any
usable identifier are excluded (None), never raised as errors.
"""

import math
from typing import Any, Callable, Dict, Optional

from loguru import logger

from .models import PRIMARY_PROVIDER, SECONDARY_PROVIDER, CanonicalTrack

RawTrack = Dict[str, Any]


def _clean_str(value: Any) -> Optional[str]:
    """Return stripped string or None for missing/blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first_genre(value: Any) -> Optional[str]:
    """Reduce multi-genre data to its primary genre."""
    if isinstance(value, (list, tuple)):
        for genre in value:
            cleaned = _clean_str(genre)
            if cleaned:
                return cleaned
        return None
    return _clean_str(value)


def _finite_number(value: Any) -> Optional[float]:
    """Return value as a finite float; None for booleans and non-numeric or non-finite values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (ValueError, TypeError):
        return None
    return number if math.isfinite(number) else None


def _positive_int(value: Any) -> Optional[int]:
    number = _finite_number(value)
    if number is None:
        return None
    whole = int(number)
    return whole if whole > 0 else None


def _round_int(value: Any) -> Optional[int]:
    number = _finite_number(value)
    return int(round(number)) if number is not None else None


def scale_audio_feature(value: Any) -> Optional[int]:
    """Rescale a 0-1 audio feature to the 0-100 scale.

    Missing, non-numeric or non-finite values stay unset rather than defaulting to 0.

    Examples:
        >>> scale_audio_feature(0.734)
        73
        >>> scale_audio_feature(None) is None
        True
    """
    number = _finite_number(value)
    if number is None:
        return None
    return _round_int(number * 100)


def normalize_apple_track(raw: RawTrack) -> Optional[CanonicalTrack]:
    """Convert an Apple Music heavy-rotation or library-song row.

    Heavy-rotation rows use resource_name/album_art_url/genres, library songs
    use track_name/artwork_url/genre_names. The catalog id wins over the
    library id.
    """
    title = _clean_str(raw.get("resource_name")) or _clean_str(raw.get("track_name"))
    artist = _clean_str(raw.get("artist_name"))
    track_id = _clean_str(raw.get("catalog_id")) or _clean_str(raw.get("id"))

    if not title or not artist or not track_id:
        logger.debug(
            f"Skipping Apple track: title={title}, artist={artist}, id={track_id}"
        )
        return None

    genres = raw.get("genres") if raw.get("genres") else raw.get("genre_names")

    return CanonicalTrack(
        id=track_id,
        title=title,
        artist=artist,
        album=_clean_str(raw.get("album_name")) or "",
        artwork_url=_clean_str(raw.get("album_art_url"))
        or _clean_str(raw.get("artwork_url")),
        duration_ms=_positive_int(raw.get("duration_ms")),
        isrc=_clean_str(raw.get("isrc")),
        source_provider=PRIMARY_PROVIDER,
        genre=_first_genre(genres),
    )


def normalize_spotify_track(raw: RawTrack) -> Optional[CanonicalTrack]:
    """Convert a Spotify top-track row, rescaling 0-1 audio features to 0-100."""
    title = _clean_str(raw.get("track_name"))
    artist = _clean_str(raw.get("artist_name"))
    track_id = _clean_str(raw.get("spotify_track_id")) or _clean_str(raw.get("id"))

    if not title or not artist or not track_id:
        logger.debug(
            f"Skipping Spotify track: title={title}, artist={artist}, id={track_id}"
        )
        return None

    return CanonicalTrack(
        id=track_id,
        title=title,
        artist=artist,
        album=_clean_str(raw.get("album_name")) or "",
        artwork_url=_clean_str(raw.get("album_art_url")),
        duration_ms=_positive_int(raw.get("duration_ms")),
        isrc=_clean_str(raw.get("isrc")),
        source_provider=SECONDARY_PROVIDER,
        energy=scale_audio_feature(raw.get("energy")),
        valence=scale_audio_feature(raw.get("valence")),
        danceability=scale_audio_feature(raw.get("danceability")),
        tempo=_round_int(raw.get("tempo")),
        genre=_first_genre(raw.get("genres")),
    )


NORMALIZERS: Dict[str, Callable[[RawTrack], Optional[CanonicalTrack]]] = {
    PRIMARY_PROVIDER: normalize_apple_track,
    SECONDARY_PROVIDER: normalize_spotify_track,
}


def normalize(raw: RawTrack, provider: str) -> Optional[CanonicalTrack]:
    """Normalize a raw provider row into a CanonicalTrack.

    Args:
        raw: Row as supplied by the sync collaborator
        provider: Provider name ('apple' or 'spotify')

    Returns:
        CanonicalTrack, or None if the row lacks identity fields

    Raises:
        ValueError: If the provider is unknown
    """
    normalizer = NORMALIZERS.get(provider)
    if normalizer is None:
        raise ValueError(
            f"Unknown provider: {provider}. Valid providers are: {sorted(NORMALIZERS)}"
        )

    if not isinstance(raw, dict):
        logger.debug(f"Skipping non-dict {provider} row: {type(raw).__name__}")
        return None

    return normalizer(raw)
