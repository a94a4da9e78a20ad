from pydantic import BaseModel, Field, PrivateAttr
from typing import List, Optional, Callable, Awaitable

from models.slide import Slide, SlideComment


class SlideChange(BaseModel):
    """One modification the model reports having made"""
    section: str = "general"
    shortDescription: str
    detailedDescription: str
    appliedComment: Optional[SlideComment] = Field(default=None, description="The SlideComment this change answers")


class ChangeSummary(BaseModel):
    totalChanges: int = 0
    affectedSections: List[str] = Field(default_factory=list, description="Deduplicated, in order of first appearance")
    improvementAreas: List[str] = Field(default_factory=list)


class TemporaryImageInfo(BaseModel):
    """A generated image parked in temporary storage until the lesson is saved"""
    tempUrl: str
    fileName: str
    filePath: str
    prompt: str
    width: int
    height: int
    sessionId: str


class ImageMigrationResult(BaseModel):
    permanentUrl: str = ""
    tempUrl: str
    success: bool
    error: Optional[str] = None


class ImageProcessingInfo(BaseModel):
    """Image statistics for one edit pass"""
    imagesGenerated: int = 0
    imagesKept: int = 0
    imagesFailed: int = 0
    temporaryImages: List[TemporaryImageInfo] = Field(default_factory=list)
    processingErrors: List[str] = Field(default_factory=list)
    sessionId: Optional[str] = None


class EditResult(BaseModel):
    """Output of one editing pass"""
    editedSlide: Slide
    changes: List[SlideChange] = Field(default_factory=list)
    summary: ChangeSummary = Field(default_factory=ChangeSummary)
    imageProcessing: Optional[ImageProcessingInfo] = None


class PendingComments(BaseModel):
    """
    Comments accumulated for one slide before they are submitted as a batch.

    submit() hands the batch to an editor callable, drops the submitted comments
    when the edit succeeds and keeps every comment when it raises.
    """
    slideId: str
    comments: List[SlideComment] = Field(default_factory=list)
    _submitting: bool = PrivateAttr(default=False)

    def add(self, comment: SlideComment) -> None:
        self.comments.append(comment)

    def remove(self, index: int) -> None:
        del self.comments[index]

    def clear(self) -> None:
        self.comments = []

    def __len__(self) -> int:
        return len(self.comments)

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    async def submit(self, editor: Callable[[List[SlideComment]], Awaitable[EditResult]]) -> EditResult:
        if not self.comments:
            raise ValueError("No pending comments to submit")
        if self._submitting:
            raise RuntimeError("Pending comments are already being submitted")
        self._submitting = True
        batch = list(self.comments)
        try:
            result = await editor(batch)
        finally:
            self._submitting = False
        # Comments added while the edit ran stay pending
        submitted = {id(comment) for comment in batch}
        self.comments = [comment for comment in self.comments if id(comment) not in submitted]
        return result
