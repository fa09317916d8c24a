"""
Environment-driven configuration.

Credentials are always injected from the environment (or built directly as
models by the caller); nothing here carries a key.

Variables:
    GEMINI_API_KEYS     comma separated primary key pool (required for text)
    GEMINI_BASE_URL     override for the Gemini endpoint
    GEMINI_MODEL        Gemini model name
    DEEPSEEK_API_KEY    secondary provider key (optional)
    DEEPSEEK_BASE_URL   override for the DeepSeek endpoint
    KIE_API_KEY         video job key (required for video)
    KIE_BASE_URL        override for the kie.ai endpoint
    VEO_POLL_INTERVAL   seconds between status polls
    VEO_MAX_WAIT        seconds before a job times out
"""

import os
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError
from veo_studio_client.errors import ConfigurationError
from veo_studio_client.models import TextGenerationConfig, VideoJobConfig


def _split_keys(value: str) -> List[str]:
    return [key.strip() for key in value.split(",") if key.strip()]


def _optional(env: Mapping[str, str], name: str, target: Dict[str, Any], field: str):
    value = env.get(name, "").strip()
    if value:
        target[field] = value


def load_text_config(env: Optional[Mapping[str, str]] = None) -> TextGenerationConfig:
    env = os.environ if env is None else env

    keys = _split_keys(env.get("GEMINI_API_KEYS", ""))
    if not keys:
        raise ConfigurationError("GEMINI_API_KEYS environment variable not set")

    values: Dict[str, Any] = {"gemini_api_keys": keys}
    _optional(env, "GEMINI_BASE_URL", values, "gemini_base_url")
    _optional(env, "GEMINI_MODEL", values, "gemini_model")
    _optional(env, "DEEPSEEK_API_KEY", values, "deepseek_api_key")
    _optional(env, "DEEPSEEK_BASE_URL", values, "deepseek_base_url")
    return TextGenerationConfig(**values)


def load_video_config(env: Optional[Mapping[str, str]] = None) -> VideoJobConfig:
    env = os.environ if env is None else env

    api_key = env.get("KIE_API_KEY", "").strip()
    if not api_key:
        raise ConfigurationError("KIE_API_KEY environment variable not set")

    values: Dict[str, Any] = {"api_key": api_key}
    _optional(env, "KIE_BASE_URL", values, "base_url")
    _optional(env, "VEO_POLL_INTERVAL", values, "poll_interval")
    _optional(env, "VEO_MAX_WAIT", values, "max_wait")
    try:
        return VideoJobConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid video job configuration: {e}") from e
