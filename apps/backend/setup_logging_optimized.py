import logging

from config.logging_config import apply_logging_config, get_logging_config


def setup_logging(level: str = None) -> None:
    """Initialize logging for the editing backend.

    - Applies the environment profile from config.logging_config once
    - An explicit level overrides the profile's default level
    """
    root = logging.getLogger()
    if not root.handlers:
        apply_logging_config(get_logging_config())
    if level:
        try:
            root.setLevel(getattr(logging, level.upper()))
        except AttributeError:
            root.setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger after ensuring logging is initialized."""
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)


def preview(text: str, limit: int = 200) -> str:
    """Shorten long payloads (HTML, model output) for log lines."""
    if text is None:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + f"...[{len(text) - limit} more chars]"
