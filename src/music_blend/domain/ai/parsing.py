"""Parsing of structured language-model responses.

Model output is untrusted text. Every parser returns either a validated
pydantic model or a ParseFailure value, so call sites must handle the
failure branch explicitly instead of catching exceptions.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


@dataclass(frozen=True)
class ParseFailure:
    """Why a model response could not be used."""

    reason: str
    raw: str = ""


class StrategyResponse(BaseModel):
    """Blend strategy as returned by the model."""

    model_config = ConfigDict(extra="ignore")

    overallMood: str = Field(min_length=1)
    energyProgression: List[str] = Field(min_length=1)
    genreMixingStyle: Optional[str] = None
    tracksPerUser: Optional[List[int]] = None
    reasoning: Optional[str] = None


class TrackSelection(BaseModel):
    """One pick: userIndex is 0-based, trackIndex is 1-based into the shown list."""

    model_config = ConfigDict(extra="ignore")

    userIndex: int
    trackIndex: int
    reasoning: str = ""


_SELECTIONS_ADAPTER = TypeAdapter(List[TrackSelection])

ParsedStrategy = Union[StrategyResponse, ParseFailure]
ParsedSelections = Union[List[TrackSelection], ParseFailure]


def strip_code_fences(content: str) -> str:
    """Return the body of the first ``` / ```json block, or the content itself.

    Examples:
        >>> strip_code_fences('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
        >>> strip_code_fences('[1, 2]')
        '[1, 2]'
    """
    match = CODE_FENCE_PATTERN.search(content)
    return match.group(1) if match else content.strip()


def load_json(content: str) -> Union[Any, ParseFailure]:
    """Decode JSON from a model response, handling markdown code blocks."""
    json_text = strip_code_fences(content or "")
    if not json_text:
        return ParseFailure("empty response", content or "")
    try:
        return json.loads(json_text)
    except json.JSONDecodeError as e:
        return ParseFailure(f"invalid JSON: {e}", content)


def parse_strategy(content: str) -> ParsedStrategy:
    """Parse a strategy response into a StrategyResponse or ParseFailure."""
    data = load_json(content)
    if isinstance(data, ParseFailure):
        return data
    if not isinstance(data, dict):
        return ParseFailure(f"strategy is not an object: {type(data).__name__}", content)
    try:
        return StrategyResponse.model_validate(data)
    except ValidationError as e:
        return ParseFailure(f"invalid strategy: {e.error_count()} validation errors", content)


def parse_selections(content: str) -> ParsedSelections:
    """Parse a batch response into a list of TrackSelection or ParseFailure.

    Accepts a bare JSON array, or an object wrapping it under "selections".
    """
    data = load_json(content)
    if isinstance(data, ParseFailure):
        return data
    if isinstance(data, dict) and isinstance(data.get("selections"), list):
        data = data["selections"]
    if not isinstance(data, list):
        return ParseFailure(f"selections are not a list: {type(data).__name__}", content)
    try:
        return _SELECTIONS_ADAPTER.validate_python(data)
    except ValidationError as e:
        return ParseFailure(f"invalid selections: {e.error_count()} validation errors", content)
