"""
Language-model integration for Music Blend using the OpenAI Responses API
"""

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import openai
from dotenv import load_dotenv
from loguru import logger

from music_blend.core.config import AIConfig, get_config_dir


class AIError(Exception):
    """Custom exception for AI-related errors."""

    pass


@dataclass(frozen=True)
class Completion:
    """Text returned by a model call plus its token usage."""

    text: str
    total_tokens: int = 0
    response_time_ms: int = 0


class LanguageModel(Protocol):
    """Anything that turns a prompt into a Completion.

    Implementations raise AIError (or any exception) on failure; callers
    treat every exception as a reason to fall back.
    """

    def complete(
        self, prompt: str, *, temperature: float, max_output_tokens: int
    ) -> Completion:
        ...


def get_api_key() -> Optional[str]:
    """Get OpenAI API key from environment variable or .env file."""
    api_key = os.getenv("OPENAI_API_KEY")
    if api_key:
        return api_key

    # Project root .env first, then the config directory
    for env_file in (Path.cwd() / ".env", get_config_dir() / ".env"):
        if env_file.exists():
            load_dotenv(env_file)
            api_key = os.getenv("OPENAI_API_KEY")
            if api_key:
                return api_key

    return None


class OpenAILanguageModel:
    """LanguageModel backed by the OpenAI Responses API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        timeout_seconds: float = 60.0,
        client: Optional[openai.OpenAI] = None,
    ):
        self.model = model
        self.client = client or openai.OpenAI(api_key=api_key, timeout=timeout_seconds)

    @classmethod
    def from_config(cls, config: AIConfig) -> "OpenAILanguageModel":
        """Create a client from AI config, resolving the API key.

        Raises:
            AIError: If no API key is configured
        """
        api_key = config.openai_api_key or get_api_key()
        if not api_key:
            raise AIError(
                "No OpenAI API key found. Set OPENAI_API_KEY or [ai].openai_api_key."
            )
        return cls(api_key=api_key, model=config.model, timeout_seconds=config.request_timeout_seconds)

    def complete(
        self, prompt: str, *, temperature: float, max_output_tokens: int
    ) -> Completion:
        start_time = time.time()

        try:
            response = self.client.responses.create(
                model=self.model,
                input=prompt,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
            )
        except openai.APIError as e:
            raise AIError(f"OpenAI API error: {str(e)}") from e

        response_time_ms = int((time.time() - start_time) * 1000)
        usage = getattr(response, "usage", None)
        total_tokens = getattr(usage, "total_tokens", 0) or 0

        logger.debug(
            f"Model {self.model} responded in {response_time_ms}ms ({total_tokens} tokens)"
        )

        return Completion(
            text=(response.output_text or "").strip(),
            total_tokens=total_tokens,
            response_time_ms=response_time_ms,
        )
