"""
Interfaces for the slide editing pipeline's external collaborators.

Design principles:
- Small, focused interfaces
- Request/response contracts only; providers stay swappable
- Testability (every collaborator can be faked)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from models.editing import ImageMigrationResult, TemporaryImageInfo


# ============= Data Models =============

@dataclass
class ImageGenerationResponse:
    """Result of one image generation request"""
    success: bool
    image: Optional[str] = None  # base64 without data: prefix
    model: Optional[str] = None
    error: Optional[str] = None
    mime_type: str = "image/png"

    @classmethod
    def failed(cls, error: str, model: Optional[str] = None) -> 'ImageGenerationResponse':
        return cls(success=False, error=error, model=model)


# ============= Core Interfaces =============

class ITextModel(ABC):
    """Text generation collaborator"""

    @abstractmethod
    async def call(self, prompt: str) -> str:
        """Return the raw model text for a prompt"""
        pass


class IImageGenerator(ABC):
    """Image generation collaborator"""

    @abstractmethod
    async def generate_image(self, prompt: str, width: int, height: int) -> ImageGenerationResponse:
        """Generate one image; report failure in the response instead of raising"""
        pass


class ITemporaryImageStore(ABC):
    """Temporary object storage for generated images"""

    @abstractmethod
    async def upload_temporary_image(
        self,
        image_base64: str,
        prompt: str,
        width: int,
        height: int,
        index: int,
        session_id: str,
    ) -> Optional[TemporaryImageInfo]:
        """Upload and return the stored image info, or None on failure"""
        pass

    @abstractmethod
    async def migrate_to_permanent(
        self,
        images: List[TemporaryImageInfo],
        lesson_id: str,
    ) -> List[ImageMigrationResult]:
        """Copy images to permanent storage and delete the temporary files"""
        pass

    @abstractmethod
    async def cleanup_session(self, session_id: str) -> bool:
        """Delete every temporary image of a session"""
        pass
