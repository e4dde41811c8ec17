"""Test helpers: track factories and a scripted language model."""

from typing import List, Optional, Union

from music_blend.domain.ai.client import Completion
from music_blend.domain.tracks.models import CanonicalTrack
from music_blend.domain.tracks.profile import UserMusicProfile


def make_track(
    track_id: str,
    title: Optional[str] = None,
    artist: Optional[str] = None,
    **kwargs,
) -> CanonicalTrack:
    """Create a canonical track with sensible test defaults."""
    kwargs.setdefault("source_provider", "apple")
    return CanonicalTrack(
        id=track_id,
        title=title or f"Track {track_id}",
        artist=artist or f"Artist {track_id}",
        **kwargs,
    )


def make_tracks(prefix: str, count: int) -> List[CanonicalTrack]:
    """Create tracks PREFIX1..PREFIXn, each by its own artist."""
    return [make_track(f"{prefix}{i}") for i in range(1, count + 1)]


def make_profile(user_id: str, tracks: List[CanonicalTrack]) -> UserMusicProfile:
    return UserMusicProfile(user_id=user_id, track_count=len(tracks), candidate_tracks=tracks)


class ScriptedModel:
    """LanguageModel double returning scripted texts or raising scripted errors.

    Once the script is used up, the last entry repeats.
    """

    def __init__(self, *responses: Union[str, Exception], tokens: int = 100):
        self.responses = list(responses)
        self.tokens = tokens
        self.prompts: List[str] = []

    def complete(self, prompt: str, *, temperature: float, max_output_tokens: int) -> Completion:
        self.prompts.append(prompt)
        index = min(len(self.prompts) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return Completion(text=response, total_tokens=self.tokens)
