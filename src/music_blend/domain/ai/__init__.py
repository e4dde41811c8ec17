"""AI domain - language-model curated blend generation.

This domain handles:
- The OpenAI-backed language model client
- Parsing model responses into tagged results
- Blend strategy planning with a deterministic fallback
- Batched track selection with a round-robin fallback
- End-to-end generation and cost estimation
"""

from .batch_selector import (
    BatchSelectionError,
    BatchSelectionResult,
    SelectedTrack,
    round_robin_fill,
    select_tracks_in_batches,
)
from .client import AIError, Completion, LanguageModel, OpenAILanguageModel, get_api_key
from .generation import (
    BlendGenerationResult,
    InsufficientDataError,
    estimate_blend_generation_cost,
    generate_blend_from_profiles,
    generate_blend_with_llm,
    to_persistence_records,
    tokens_to_cost,
)
from .parsing import ParseFailure, parse_selections, parse_strategy, strip_code_fences
from .strategy import BlendStrategy, create_blend_strategy, fallback_strategy

__all__ = [
    "BatchSelectionError",
    "BatchSelectionResult",
    "SelectedTrack",
    "round_robin_fill",
    "select_tracks_in_batches",
    "AIError",
    "Completion",
    "LanguageModel",
    "OpenAILanguageModel",
    "get_api_key",
    "BlendGenerationResult",
    "InsufficientDataError",
    "estimate_blend_generation_cost",
    "generate_blend_from_profiles",
    "generate_blend_with_llm",
    "to_persistence_records",
    "tokens_to_cost",
    "ParseFailure",
    "parse_selections",
    "parse_strategy",
    "strip_code_fences",
    "BlendStrategy",
    "create_blend_strategy",
    "fallback_strategy",
]
