"""
Configuration management for Music Blend
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

VALID_ALGORITHMS = {"interleave", "weighted", "discovery"}
VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class AIConfig:
    """Configuration for the language-model integration."""

    openai_api_key: Optional[str] = None
    model: str = "gpt-4o"
    strategy_temperature: float = 0.7
    strategy_max_tokens: int = 1000
    batch_temperature: float = 0.5
    batch_max_tokens: int = 1500
    request_timeout_seconds: float = 60.0
    # API pricing per 1K tokens (in USD)
    cost_per_1k_tokens: float = 0.06

    def validate(self) -> None:
        """Validate AI configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        if self.cost_per_1k_tokens < 0:
            raise ValueError("cost_per_1k_tokens cannot be negative")
        if self.strategy_max_tokens <= 0 or self.batch_max_tokens <= 0:
            raise ValueError("max token limits must be positive")


@dataclass
class BlendConfig:
    """Configuration for blend generation."""

    target_length: int = 55
    batch_size: int = 8
    continuity_window: int = 3  # Last N selected tracks shown to the model
    candidate_pool_size: int = 50  # Tracks pulled per user for profiling
    candidate_context_size: int = 30  # Tracks kept per user as LLM candidates
    max_batch_retries: int = 0
    retry_backoff_seconds: float = 1.0
    default_algorithm: str = "interleave"
    remove_duplicates: bool = True
    diversity_boost: bool = False

    def validate(self) -> None:
        """Validate blend configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.target_length <= 0:
            raise ValueError("target_length must be positive")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.continuity_window < 0:
            raise ValueError("continuity_window cannot be negative")
        if self.candidate_context_size > self.candidate_pool_size:
            raise ValueError(
                "candidate_context_size cannot exceed candidate_pool_size"
            )
        if self.max_batch_retries < 0:
            raise ValueError("max_batch_retries cannot be negative")
        if self.default_algorithm not in VALID_ALGORITHMS:
            raise ValueError(
                f"Invalid default_algorithm: {self.default_algorithm}. "
                f"Valid algorithms are: {sorted(VALID_ALGORITHMS)}"
            )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/music-blend/music-blend.log)
    )
    max_file_size_mb: int = 10  # Maximum log file size before rotation
    backup_count: int = 5  # Number of backup files to keep
    console_output: bool = False  # Also output to console (for debugging)

    def validate(self) -> None:
        """Validate logging configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level}")


@dataclass
class Config:
    """Main configuration object."""

    ai: AIConfig = field(default_factory=AIConfig)
    blend: BlendConfig = field(default_factory=BlendConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        self.ai.validate()
        self.blend.validate()
        self.logging.validate()


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "music-blend"
    return Path.home() / ".config" / "music-blend"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "music-blend"
    return Path.home() / ".local" / "share" / "music-blend"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            return config_path if config_path.exists() else None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. MUSIC_BLEND_CONFIG environment variable
    2. Project root (detected via pyproject.toml) - for development
    3. Current working directory
    4. XDG_CONFIG_HOME/music-blend (or ~/.config/music-blend)
    """
    env_path = os.environ.get("MUSIC_BLEND_CONFIG")
    if env_path:
        return Path(env_path).expanduser()

    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def _section(data: Dict[str, Any], cls: type, name: str) -> Any:
    """Build a config section dataclass from a TOML table, ignoring unknown keys."""
    table = data.get(name, {})
    if not isinstance(table, dict):
        raise ValueError(f"[{name}] must be a table")
    known = {k: v for k, v in table.items() if k in cls.__dataclass_fields__}
    return cls(**known)


def parse_config(toml_data: Dict[str, Any]) -> Config:
    """Build a validated Config from parsed TOML data.

    Raises:
        ValueError: If any section holds invalid values
    """
    config = Config(
        ai=_section(toml_data, AIConfig, "ai"),
        blend=_section(toml_data, BlendConfig, "blend"),
        logging=_section(toml_data, LoggingConfig, "logging"),
    )
    config.validate()
    return config


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file, falling back to defaults.

    Environment variables override TOML values:
    - OPENAI_API_KEY
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    path = config_path or get_config_path()

    if not path.exists():
        config = Config()
    else:
        with open(path, "rb") as f:
            toml_data = tomllib.load(f)
        config = parse_config(toml_data)

    env_key = os.getenv("OPENAI_API_KEY")
    if env_key:
        config.ai.openai_api_key = env_key

    return config


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Music Blend Configuration

[ai]
# OpenAI API key (optional - OPENAI_API_KEY env var or .env file also work)
# openai_api_key = "your-api-key-here"

# Model used for strategy planning and batch selection
model = "gpt-4o"

strategy_temperature = 0.7
strategy_max_tokens = 1000
batch_temperature = 0.5
batch_max_tokens = 1500

# Seconds before a single model call is abandoned (falls back deterministically)
request_timeout_seconds = 60.0

# API pricing per 1K tokens (in USD) - adjust based on OpenAI pricing
cost_per_1k_tokens = 0.06

[blend]
target_length = 55
batch_size = 8
continuity_window = 3
candidate_pool_size = 50
candidate_context_size = 30

# Extra model attempts per batch before the round-robin fallback
max_batch_retries = 0
retry_backoff_seconds = 1.0

# interleave, weighted or discovery
default_algorithm = "interleave"
remove_duplicates = true
diversity_boost = false

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/music-blend/music-blend.log)
# log_file = "/path/to/custom/music-blend.log"

max_file_size_mb = 10
backup_count = 5
console_output = false
""".strip()
