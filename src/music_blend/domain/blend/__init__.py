"""Blend domain - deterministic playlist mixing algorithms."""

from .algorithms import (
    ALGORITHMS,
    BlendAlgorithmName,
    BlendOptions,
    blend,
    compute_quotas,
    discovery,
    diversity_score,
    interleave,
    weighted,
)

__all__ = [
    "ALGORITHMS",
    "BlendAlgorithmName",
    "BlendOptions",
    "blend",
    "compute_quotas",
    "discovery",
    "diversity_score",
    "interleave",
    "weighted",
]
