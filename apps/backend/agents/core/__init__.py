"""
Core interfaces and contracts for the agents system.
"""

from agents.core.interfaces import (
    IImageGenerator,
    ImageGenerationResponse,
    ITemporaryImageStore,
    ITextModel,
)

__all__ = [
    "IImageGenerator",
    "ImageGenerationResponse",
    "ITemporaryImageStore",
    "ITextModel",
]
