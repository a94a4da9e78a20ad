from pydantic import BaseModel, Field
from typing import Optional, List

from models.editing import TemporaryImageInfo
from models.slide import Slide, SlideComment


class SlideEditingContext(BaseModel):
    """Lesson context the model needs to keep edits on target"""
    ageGroup: str
    topic: str
    lessonObjectives: Optional[List[str]] = None
    slidePosition: Optional[int] = None
    totalSlides: Optional[int] = None


class SlideEditRequest(BaseModel):
    """Request body for POST /api/slides/edit"""
    slide: Slide
    comments: List[SlideComment] = Field(min_length=1)
    context: SlideEditingContext
    language: Optional[str] = None
    # Carried into temporary storage paths
    userId: Optional[str] = None


class TemporaryImageMigrationRequest(BaseModel):
    """Request body for POST /api/images/temporary/migrate"""
    htmlContent: str
    temporaryImages: List[TemporaryImageInfo] = Field(default_factory=list)
    lessonId: str
    sessionId: Optional[str] = None

