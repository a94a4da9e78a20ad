from pydantic import BaseModel, Field
from typing import Optional, Literal
from uuid import uuid4


class Slide(BaseModel):
    """
    A single slide as the editor stores it.

    Attributes:
        id: Opaque stable identifier
        title: Short user-facing title
        content: Short user-facing body text
        htmlContent: Self-contained HTML document (doctype to </html>) with inline
            styles, images and image marker comments
        updatedAt: ISO timestamp of the last edit
    """
    model_config = {
        "extra": "allow"  # Keep fields owned by the frontend (type, status, previewUrl...)
    }
    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = ""
    content: str = ""
    htmlContent: Optional[str] = Field(default=None, description="Complete HTML document for the slide")
    updatedAt: Optional[str] = None

    @property
    def has_html(self) -> bool:
        return bool(self.htmlContent)


class SlideComment(BaseModel):
    """A single piece of user feedback attached to a slide edit request"""
    id: Optional[str] = None
    slideId: Optional[str] = None
    sectionType: str = Field(default="general", description="Categorical tag, e.g. general | slide | objective | game")
    sectionId: Optional[str] = Field(default=None, description="Optional sub-target such as a slide number")
    comment: str = Field(min_length=5, max_length=500)
    priority: Literal["low", "medium", "high"] = "medium"
