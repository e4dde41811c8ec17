"""
Music Blend CLI - Entry point

Subcommands:
- blend: merge ranked per-user track lists with a deterministic algorithm
- generate: build an AI-curated blend from synced provider rows
- estimate-cost: estimate the model cost of one generation run
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from music_blend.core.config import Config, load_config
from music_blend.core.logging import setup_logging
from music_blend.domain.ai import (
    AIError,
    InsufficientDataError,
    OpenAILanguageModel,
    estimate_blend_generation_cost,
    generate_blend_with_llm,
)
from music_blend.domain.blend import ALGORITHMS, BlendOptions, blend
from music_blend.domain.tracks import (
    SOURCE_PROVIDERS,
    BlendInput,
    CanonicalTrack,
    InMemoryTrackSource,
)

TRACK_FIELDS = set(CanonicalTrack.__dataclass_fields__)


def _read_json(path: str) -> Dict[str, Any]:
    with open(Path(path).expanduser(), "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level JSON value must be an object")
    return data


def track_from_dict(data: Dict[str, Any]) -> Optional[CanonicalTrack]:
    """Build a CanonicalTrack from already-canonical JSON, or None if unusable."""
    if not isinstance(data, dict):
        return None
    if not data.get("id") or not data.get("title") or not data.get("artist"):
        return None
    fields = {k: v for k, v in data.items() if k in TRACK_FIELDS}
    fields.setdefault("source_provider", SOURCE_PROVIDERS[0])
    if fields["source_provider"] not in SOURCE_PROVIDERS:
        return None
    return CanonicalTrack(**fields)


def inputs_from_dict(data: Dict[str, Any]) -> List[BlendInput]:
    """Parse {"inputs": [{"user_id", "weight", "tracks": [...]}]}."""
    inputs = []
    for entry in data.get("inputs", []):
        if not isinstance(entry, dict) or not isinstance(entry.get("tracks", []), list):
            raise ValueError(f"each input must be an object with a tracks list, got: {entry!r}")
        tracks = [t for t in (track_from_dict(raw) for raw in entry.get("tracks", [])) if t]
        inputs.append(
            BlendInput(user_id=str(entry["user_id"]), tracks=tracks, weight=entry.get("weight"))
        )
    return inputs


def run_blend(args: argparse.Namespace, config: Config) -> int:
    """Run a deterministic blend and print the result as JSON."""
    inputs = inputs_from_dict(_read_json(args.input))

    options = BlendOptions(
        max_tracks=args.max_tracks or config.blend.target_length,
        algorithm=args.algorithm or config.blend.default_algorithm,
        remove_duplicates=config.blend.remove_duplicates and not args.keep_duplicates,
        diversity_boost=config.blend.diversity_boost or args.diversity_boost,
    )

    blended = blend(inputs, options)
    output = [
        {
            "position": position,
            "track_id": item.track.id,
            "title": item.title,
            "artist": item.artist,
            "contributed_by": item.contributed_by,
            "original_rank": item.original_rank,
        }
        for position, item in enumerate(blended, 1)
    ]
    print(json.dumps(output, indent=2))
    return 0


def run_generate(args: argparse.Namespace, config: Config) -> int:
    """Run the AI-curated pipeline and print the result as JSON."""
    source = InMemoryTrackSource.from_dict(_read_json(args.sync_data))
    model = OpenAILanguageModel.from_config(config.ai)

    result = generate_blend_with_llm(
        source,
        args.users,
        args.name,
        model,
        target_length=args.length or config.blend.target_length,
        config=config,
    )

    print(
        json.dumps(
            {
                "name": args.name,
                "track_count": len(result.tracks),
                "complete": result.is_complete,
                "reasoning": result.reasoning,
                "total_tokens": result.total_tokens,
                "estimated_cost": round(result.estimated_cost, 4),
                "tracks": result.tracks,
            },
            indent=2,
        )
    )
    return 0


def run_estimate_cost(args: argparse.Namespace, config: Config) -> int:
    cost = estimate_blend_generation_cost(
        args.participants,
        args.length or config.blend.target_length,
        config.ai.cost_per_1k_tokens,
    )
    print(f"Estimated cost: ${cost:.4f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="music-blend",
        description="Blend several listeners' music into one playlist",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", help="Path to config.toml")

    subparsers = parser.add_subparsers(dest="command")

    blend_parser = subparsers.add_parser("blend", help="Deterministic blend of ranked track lists")
    blend_parser.add_argument("input", help="JSON file with per-user ranked tracks")
    blend_parser.add_argument("--algorithm", choices=sorted(ALGORITHMS), help="Blend algorithm")
    blend_parser.add_argument("--max-tracks", type=int, help="Maximum playlist length")
    blend_parser.add_argument(
        "--keep-duplicates", action="store_true", help="Keep tracks shared by several users"
    )
    blend_parser.add_argument(
        "--diversity-boost", action="store_true", help="Reward unseen artists (discovery)"
    )

    generate_parser = subparsers.add_parser("generate", help="AI-curated blend from synced data")
    generate_parser.add_argument("sync_data", help="JSON file with per-user synced provider rows")
    generate_parser.add_argument("--name", required=True, help="Blend name")
    generate_parser.add_argument("--users", nargs="+", required=True, help="Participant user ids")
    generate_parser.add_argument("--length", type=int, help="Target playlist length")

    cost_parser = subparsers.add_parser("estimate-cost", help="Estimate generation cost")
    cost_parser.add_argument("--participants", type=int, required=True)
    cost_parser.add_argument("--length", type=int, help="Target playlist length")

    return parser


COMMANDS = {
    "blend": run_blend,
    "generate": run_generate,
    "estimate-cost": run_estimate_cost,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(Path(args.config) if args.config else None)
    except (OSError, ValueError) as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging)

    try:
        return COMMANDS[args.command](args, config)
    except InsufficientDataError as e:
        logger.warning(str(e))
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except AIError as e:
        logger.error(str(e))
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Bad input: {e}")
        print(f"❌ Bad input: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
