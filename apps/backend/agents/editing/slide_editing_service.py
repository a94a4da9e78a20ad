"""
Slide editing pipeline.

strip images -> build prompt -> call model -> parse/repair -> resolve images -> assemble

Provider, format and truncation failures propagate to the caller; there is
no fallback to the original slide. Image problems never fail an edit.
"""

import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import langsmith as ls

from agents.core.interfaces import IImageGenerator, ITemporaryImageStore, ITextModel
from agents.editing.config import EditingConfig, get_config
from agents.editing.content_sanitizer import ContentSanitizer
from agents.editing.exceptions import ConfigurationError, SlideEditingError
from agents.editing.image_resolution import ImageResolutionStage
from agents.editing.model_client import SlideEditModelClient
from agents.editing.response_parser import ResponseParser
from agents.editing.result_assembler import assemble
from agents.prompts.editing.slide_edit_prompt import build_editing_prompt
from models.editing import EditResult
from models.requests import SlideEditingContext
from models.slide import Slide, SlideComment
from setup_logging_optimized import get_logger

logger = get_logger(__name__)


def make_session_id(slide_id: str, now: float) -> str:
    return f"slide_edit_{slide_id}_{int(now * 1000)}"


@dataclass
class BatchEditProgress:
    """Progress of edit_slides; results and errors are keyed by slide id"""
    total: int
    completed: int = 0
    results: Dict[str, EditResult] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    current_slide: Optional[str] = None
    is_completed: bool = False


class SlideEditingService:
    """Edits one slide from a batch of user comments"""

    def __init__(
        self,
        model_client: ITextModel,
        image_stage: ImageResolutionStage,
        sanitizer: Optional[ContentSanitizer] = None,
        parser: Optional[ResponseParser] = None,
        config: Optional[EditingConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or get_config()
        self.model_client = model_client
        self.image_stage = image_stage
        self.sanitizer = sanitizer or ContentSanitizer()
        self.parser = parser or ResponseParser()
        self.clock = clock

    async def edit_slide(
        self,
        slide: Slide,
        comments: List[SlideComment],
        context: SlideEditingContext,
        language: Optional[str] = None,
    ) -> EditResult:
        if not comments:
            raise ValueError("At least one comment is required to edit a slide")

        started = self.clock()
        session_id = make_session_id(slide.id, started)
        logger.info(f"[SLIDE_EDIT] Editing slide {slide.id} with {len(comments)} comments (session {session_id})")

        with ls.trace(
            name="slide-edit",
            tags=["slide-edit"],
            inputs={"slide_id": slide.id, "comments": [c.comment for c in comments]},
            metadata={"session_id": session_id, "language": language or self.config.default_language},
        ) as rt:
            stripped = self.sanitizer.strip(slide.htmlContent or "")
            prompt_slide = slide.model_copy(update={"htmlContent": stripped.stripped_html}) if slide.has_html else slide

            prompt = build_editing_prompt(
                prompt_slide,
                comments,
                context,
                language or self.config.default_language,
                minify=self.config.minify_html,
            )
            raw = await self.model_client.call(prompt)
            parsed = self.parser.parse(raw, slide, comments)

            image_stats = None
            final_html = parsed.editedSlide.htmlContent
            if final_html:
                resolution = await self.image_stage.resolve(final_html, stripped.image_map, session_id)
                final_html = resolution.html
                image_stats = resolution.stats

            result = assemble(parsed.editedSlide, final_html, parsed.changes, parsed.summary, image_stats)
            rt.end(outputs={
                "total_changes": result.summary.totalChanges,
                "images_generated": image_stats.imagesGenerated if image_stats else 0,
                "images_kept": image_stats.imagesKept if image_stats else 0,
            })

        logger.info(
            f"[SLIDE_EDIT] Slide {slide.id} edited in {self.clock() - started:.1f}s: "
            f"{result.summary.totalChanges} changes"
        )
        return result

    async def edit_slides(
        self,
        edits: Sequence[Tuple[Slide, List[SlideComment]]],
        context: SlideEditingContext,
        language: Optional[str] = None,
        on_progress: Optional[Callable[[BatchEditProgress], Awaitable[None]]] = None,
    ) -> BatchEditProgress:
        """
        Edit several slides one after another.

        A failing slide is recorded in progress.errors and the batch moves on.
        Slides are edited sequentially so their image requests share the same
        pacing.
        """
        progress = BatchEditProgress(total=len(edits))
        for position, (slide, comments) in enumerate(edits):
            progress.current_slide = slide.id
            slide_context = context
            if context.slidePosition is None:
                slide_context = context.model_copy(update={"slidePosition": position + 1, "totalSlides": len(edits)})
            try:
                progress.results[slide.id] = await self.edit_slide(slide, comments, slide_context, language)
            except (SlideEditingError, ValueError) as e:
                logger.error(f"[SLIDE_EDIT] Batch edit failed for slide {slide.id}: {e}")
                progress.errors[slide.id] = str(e)
            progress.completed += 1
            if on_progress is not None:
                await on_progress(progress)

        progress.current_slide = None
        progress.is_completed = True
        logger.info(
            f"[SLIDE_EDIT] Batch complete: {len(progress.results)}/{progress.total} slides edited, "
            f"{len(progress.errors)} failed"
        )
        return progress


def create_image_generator(config: Optional[EditingConfig] = None) -> IImageGenerator:
    """Pick the image provider named by IMAGE_PROVIDER."""
    config = config or get_config()
    provider = config.images.provider.lower()
    if provider == "gemini":
        from services.gemini_image_service import GeminiImageService
        return GeminiImageService()
    if provider == "http":
        from services.http_image_service import HttpImageGenerationService
        return HttpImageGenerationService(
            api_url=config.images.api_url,
            timeout_seconds=config.images.request_timeout_seconds,
        )
    raise ConfigurationError(f"Unknown IMAGE_PROVIDER: {config.images.provider!r}")


def create_slide_editing_service(
    user_id: Optional[str] = None,
    config: Optional[EditingConfig] = None,
    temporary_store: Optional[ITemporaryImageStore] = None,
) -> SlideEditingService:
    """Wire the production collaborators from configuration."""
    config = config or get_config()
    if temporary_store is None and config.storage.use_temporary_storage:
        from services.temporary_image_service import TemporaryImageService
        temporary_store = TemporaryImageService(
            user_id=user_id or "anonymous",
            temp_bucket=config.storage.temp_bucket,
            permanent_bucket=config.storage.permanent_bucket,
        )
    image_stage = ImageResolutionStage(
        image_generator=create_image_generator(config),
        temporary_store=temporary_store,
        config=config,
    )
    return SlideEditingService(
        model_client=SlideEditModelClient(config=config),
        image_stage=image_stage,
        config=config,
    )
