"""
Track domain models.

Contains the canonical track representation shared by every blend algorithm,
plus the per-user inputs and outputs of a blend.
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional

SourceProvider = Literal["apple", "spotify"]

PRIMARY_PROVIDER: SourceProvider = "apple"
SECONDARY_PROVIDER: SourceProvider = "spotify"
SOURCE_PROVIDERS = (PRIMARY_PROVIDER, SECONDARY_PROVIDER)


@dataclass(frozen=True)
class CanonicalTrack:
    """Provider-agnostic track.

    Audio features (energy, valence, danceability) are on a 0-100 scale.
    Optional fields stay None when the provider did not supply them.
    """

    id: str  # Provider-scoped track identifier
    title: str
    artist: str
    source_provider: SourceProvider
    album: str = ""
    artwork_url: Optional[str] = None
    duration_ms: Optional[int] = None
    isrc: Optional[str] = None
    energy: Optional[int] = None
    valence: Optional[int] = None
    danceability: Optional[int] = None
    tempo: Optional[int] = None  # BPM
    genre: Optional[str] = None  # Primary genre only

    @property
    def dedupe_key(self) -> str:
        """Key used for duplicate detection: ISRC, else lowercased title-artist."""
        if self.isrc:
            return self.isrc
        return f"{self.title.lower()}-{self.artist.lower()}"


@dataclass(frozen=True)
class BlendedTrack:
    """A canonical track placed in a blend, with its contributor."""

    track: CanonicalTrack
    contributed_by: str  # user_id
    original_rank: int  # 1-based position in the contributor's own list

    @property
    def id(self) -> str:
        return self.track.id

    @property
    def title(self) -> str:
        return self.track.title

    @property
    def artist(self) -> str:
        return self.track.artist

    @property
    def isrc(self) -> Optional[str]:
        return self.track.isrc


@dataclass(frozen=True)
class BlendInput:
    """One user's ranked tracks (index 0 = most preferred)."""

    user_id: str
    tracks: List[CanonicalTrack] = field(default_factory=list)
    weight: Optional[float] = None

    def __post_init__(self) -> None:
        if self.weight is not None and self.weight <= 0:
            raise ValueError(f"Weight for user {self.user_id} must be positive")

    @property
    def effective_weight(self) -> float:
        return self.weight if self.weight is not None else 1.0
