"""
Logging profiles for the slide editing backend.

The profile is chosen from the environment: DEBUG=true wins, then
ENV=production (or a RENDER deployment), otherwise development.
"""
import os
from typing import Dict, Any

PIPELINE_MODULES = [
    "agents.editing.content_sanitizer",
    "agents.editing.image_resolution",
    "services.temporary_image_service",
    "services.gemini_image_service",
    "utils.html_minifier",
]

# Provider SDK and transport loggers that flood INFO with per-request lines
NOISY_LIBRARIES = ["httpx", "httpcore", "google_genai", "langsmith", "hpack"]

LOGGING_PROFILES: Dict[str, Dict[str, Any]] = {
    "production": {
        "default_level": "WARNING",
        "console_format": "%(levelname)s - %(name)s - %(message)s",
        "log_prompts": False,
        "log_model_output": False,
        "suppress_modules": PIPELINE_MODULES + NOISY_LIBRARIES,
    },
    "development": {
        "default_level": "INFO",
        "console_format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        "log_prompts": False,
        "log_model_output": False,
        "suppress_modules": NOISY_LIBRARIES,
    },
    "debug": {
        "default_level": "DEBUG",
        "console_format": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        "log_prompts": True,
        "log_model_output": True,
        "suppress_modules": [],
    },
}


def detect_environment() -> str:
    if os.getenv("DEBUG", "false").lower() == "true":
        return "debug"
    if os.getenv("RENDER") is not None or os.getenv("ENV") == "production":
        return "production"
    return "development"


def get_logging_config() -> Dict[str, Any]:
    """Return a copy of the active profile with its name under "environment"."""
    environment = detect_environment()
    selected = dict(LOGGING_PROFILES[environment])
    selected["environment"] = environment
    return selected


def apply_logging_config(config: Dict[str, Any] = None):
    """Install a single console handler and the profile's levels on the root logger."""
    import logging

    config = config or get_logging_config()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(config["console_format"]))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, config["default_level"]))

    for name in config.get("suppress_modules", []):
        logging.getLogger(name).setLevel(logging.WARNING)
