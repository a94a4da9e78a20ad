"""
Configuration management for the slide editing pipeline.

Env-backed dataclasses; module constants in agents.config supply defaults.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple

from agents import config as global_config
from config.rate_limits import IMAGE_GENERATION_RETRY, TEXT_MODEL_RETRY, get_usage_profile


DEFAULT_TRANSIENT_MARKERS: Tuple[str, ...] = (
    "overloaded",
    "503",
    "UNAVAILABLE",
    "quota",
    "RESOURCE_EXHAUSTED",
    "rate limit",
)


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _image_profile() -> dict:
    return get_usage_profile(os.getenv('IMAGE_USAGE_PROFILE', 'balanced'))


@dataclass
class ModelConfig:
    """Text model configuration"""
    model: str = field(default_factory=lambda: os.getenv('SLIDE_EDITING_MODEL', global_config.SLIDE_EDITING_MODEL))
    temperature: float = field(default_factory=lambda: float(os.getenv('SLIDE_EDITING_TEMPERATURE', str(global_config.SLIDE_EDITING_TEMPERATURE))))
    max_output_tokens: int = field(default_factory=lambda: int(os.getenv('SLIDE_EDITING_MAX_TOKENS', str(global_config.SLIDE_EDITING_MAX_OUTPUT_TOKENS))))
    top_p: float = global_config.SLIDE_EDITING_TOP_P
    top_k: int = global_config.SLIDE_EDITING_TOP_K


@dataclass
class RetryConfig:
    """Retry configuration for both provider call sites"""
    text_max_retries: int = field(default_factory=lambda: int(os.getenv('AI_MAX_RETRIES', str(TEXT_MODEL_RETRY["max_retries"]))))
    text_base_delay: float = field(default_factory=lambda: float(os.getenv('AI_RETRY_DELAY', str(TEXT_MODEL_RETRY["base_delay"]))))
    image_max_attempts: int = field(default_factory=lambda: int(os.getenv('IMAGE_MAX_ATTEMPTS', str(IMAGE_GENERATION_RETRY["max_attempts"]))))
    image_base_delay: float = field(default_factory=lambda: float(os.getenv('IMAGE_RETRY_DELAY', str(IMAGE_GENERATION_RETRY["base_delay"]))))
    # Substrings that mark a provider error as transient. Known fragility:
    # providers change their messages between SDK versions.
    transient_markers: Tuple[str, ...] = field(default_factory=lambda: _env_list('AI_TRANSIENT_MARKERS', DEFAULT_TRANSIENT_MARKERS))


@dataclass
class ImageConfig:
    """Image resolution configuration"""
    provider: str = field(default_factory=lambda: os.getenv('IMAGE_PROVIDER', global_config.IMAGE_PROVIDER))
    api_url: str = field(default_factory=lambda: os.getenv('IMAGE_API_URL', global_config.IMAGE_API_URL))
    delay_between_images: float = field(default_factory=lambda: float(os.getenv('IMAGE_DELAY_SECONDS', str(_image_profile()["delay_between_images"]))))
    request_timeout_seconds: int = field(default_factory=lambda: int(os.getenv('IMAGE_REQUEST_TIMEOUT', '120')))


@dataclass
class StorageConfig:
    """Temporary image storage configuration"""
    use_temporary_storage: bool = field(default_factory=lambda: global_config.USE_TEMPORARY_IMAGE_STORAGE)
    fallback_to_base64: bool = global_config.TEMP_STORAGE_FALLBACK_TO_BASE64
    temp_bucket: str = field(default_factory=lambda: global_config.TEMP_IMAGES_BUCKET)
    permanent_bucket: str = field(default_factory=lambda: global_config.LESSON_ASSETS_BUCKET)


@dataclass
class EditingConfig:
    """Master configuration"""
    model: ModelConfig = field(default_factory=ModelConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    images: ImageConfig = field(default_factory=ImageConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    minify_html: bool = global_config.MINIFY_HTML_FOR_PROMPT
    default_language: str = field(default_factory=lambda: global_config.DEFAULT_CONTENT_LANGUAGE)


@lru_cache(maxsize=1)
def get_config() -> EditingConfig:
    """Get the process-wide editing configuration."""
    return EditingConfig()
