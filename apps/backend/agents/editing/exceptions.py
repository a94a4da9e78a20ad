"""
Exception hierarchy for the slide editing pipeline.

Each class marks a distinct failure kind so callers (and the HTTP layer)
can decide between retrying, surfacing a 5xx, or degrading gracefully.
"""

from typing import Optional, Dict, Any, List


class SlideEditingError(Exception):
    """Base exception for all slide editing errors"""

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context or {}

    def __str__(self):
        parts = [self.message]
        if self.cause:
            parts.append(f" (caused by: {type(self.cause).__name__}: {str(self.cause)})")
        if self.context:
            parts.append(f" Context: {self.context}")
        return "".join(parts)


# === Text model exceptions ===

class ProviderError(SlideEditingError):
    """Text model call failed after retries, or returned nothing usable"""

    def __init__(self, message: str, transient: bool = False, attempts: int = 1, **kwargs):
        super().__init__(message, **kwargs)
        self.transient = transient
        self.attempts = attempts
        self.context.update({'attempts': attempts, 'transient': transient})


class FormatError(SlideEditingError):
    """Model output could not be parsed as JSON even after repair"""

    def __init__(
        self,
        message: str,
        original_error: Optional[str] = None,
        repair_error: Optional[str] = None,
        strategies: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.original_error = original_error
        self.repair_error = repair_error
        self.strategies = strategies or []
        if original_error:
            self.context['original_error'] = original_error
        if repair_error:
            self.context['repair_error'] = repair_error
        if self.strategies:
            self.context['strategies'] = self.strategies


class TruncationError(FormatError):
    """Model output was cut off before the edited HTML was complete"""
    pass


# === Image exceptions ===

class ImageGenerationError(SlideEditingError):
    """A single image request failed. Never escapes image resolution."""

    def __init__(self, message: str, prompt: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.prompt = prompt


class TemporaryStorageError(SlideEditingError):
    """Upload, migration or cleanup of temporary images failed"""
    pass


# === Configuration exceptions ===

class ConfigurationError(SlideEditingError):
    """Required configuration missing or invalid"""
    pass


# === Recovery helpers ===

def is_retryable(error: Exception) -> bool:
    """Check if error is worth another attempt by the caller"""
    if isinstance(error, ProviderError):
        return error.transient
    return isinstance(error, (ImageGenerationError, TemporaryStorageError))
