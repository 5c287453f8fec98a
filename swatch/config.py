"""Sidecar settings loaded from the environment and the user config file."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

CONFIG_PATH = Path("~/.config/swatch/config.toml")

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image-preview"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-20250514"

PALETTE_PROVIDERS = ("auto", "gemini", "claude")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseModel):
    gemini_api_key: str = ""
    anthropic_api_key: str = ""
    image_model: str = DEFAULT_IMAGE_MODEL
    text_model: str = DEFAULT_TEXT_MODEL
    claude_model: str = DEFAULT_CLAUDE_MODEL
    palette_provider: Literal["auto", "gemini", "claude"] = "auto"
    fetch_timeout: float = 30.0
    log_level: str = "INFO"

    @property
    def use_claude_palette(self) -> bool:
        """Whether harmonic color suggestions go through Claude instead of Gemini."""
        if self.palette_provider == "gemini":
            return False
        return bool(self.anthropic_api_key)


def _read_config_file(path: Path) -> dict[str, Any]:
    path = path.expanduser()
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}


def _env_choice(env: dict[str, str], name: str, choices: tuple[str, ...], default: str) -> str:
    value = env.get(name, default).strip()
    for choice in choices:
        if value.lower() == choice.lower():
            return choice
    logger.warning(f"Ignoring invalid {name}={value!r}, using {default!r}")
    return default


def _env_float(env: dict[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        value = float("nan")
    if not value > 0:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    return value


def load_settings(
    environ: dict[str, str] | None = None,
    config_path: Path = CONFIG_PATH,
) -> Settings:
    """Build settings from environment variables, falling back to the config file.

    Environment variables win. API keys missing from the environment are looked
    up in the ``[api_keys]`` table of ``~/.config/swatch/config.toml``, and the
    optional ``[models]`` table can override the model names.
    """
    env = os.environ if environ is None else environ
    file_config = _read_config_file(config_path)
    api_keys = file_config.get("api_keys", {})
    models = file_config.get("models", {})

    gemini_key = env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY") or api_keys.get("gemini", "")
    anthropic_key = env.get("ANTHROPIC_API_KEY") or api_keys.get("anthropic", "")

    settings = Settings(
        gemini_api_key=gemini_key,
        anthropic_api_key=anthropic_key,
        image_model=env.get("SWATCH_IMAGE_MODEL") or models.get("image", DEFAULT_IMAGE_MODEL),
        text_model=env.get("SWATCH_TEXT_MODEL") or models.get("text", DEFAULT_TEXT_MODEL),
        claude_model=env.get("SWATCH_CLAUDE_MODEL") or models.get("claude", DEFAULT_CLAUDE_MODEL),
        palette_provider=_env_choice(env, "SWATCH_PALETTE_PROVIDER", PALETTE_PROVIDERS, "auto"),
        fetch_timeout=_env_float(env, "SWATCH_FETCH_TIMEOUT", 30.0),
        log_level=_env_choice(env, "SWATCH_LOG_LEVEL", LOG_LEVELS, "INFO"),
    )

    if not settings.gemini_api_key:
        logger.warning("No Gemini API key found. Image generation will be unavailable.")
    return settings
