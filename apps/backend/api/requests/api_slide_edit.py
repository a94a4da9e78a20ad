"""
API endpoints for AI slide editing and temporary image migration
"""
from typing import Callable, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from agents.editing.exceptions import (
    ConfigurationError,
    FormatError,
    ProviderError,
    SlideEditingError,
    TemporaryStorageError,
    TruncationError,
    is_retryable,
)
from agents.editing.slide_editing_service import SlideEditingService, create_slide_editing_service
from models.requests import SlideEditRequest, TemporaryImageMigrationRequest
from services.temporary_image_service import TemporaryImageService, migrate_temporary_images_to_permanent
from setup_logging_optimized import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["Slide Editing"])

ServiceFactory = Callable[[Optional[str]], SlideEditingService]


def get_service_factory() -> ServiceFactory:
    return lambda user_id: create_slide_editing_service(user_id=user_id)


def get_temporary_image_store() -> TemporaryImageService:
    return TemporaryImageService()


def error_response(error: Exception) -> JSONResponse:
    """Map pipeline errors to HTTP status codes and a stable error code."""
    if isinstance(error, TruncationError):
        status, code = 502, "TRUNCATED_RESPONSE"
    elif isinstance(error, FormatError):
        status, code = 502, "INVALID_MODEL_RESPONSE"
    elif isinstance(error, ProviderError):
        status, code = 503, "PROVIDER_UNAVAILABLE"
    elif isinstance(error, TemporaryStorageError):
        status, code = 502, "STORAGE_ERROR"
    elif isinstance(error, ConfigurationError):
        status, code = 500, "CONFIGURATION_ERROR"
    elif isinstance(error, ValueError):
        status, code = 400, "INVALID_REQUEST"
    else:
        status, code = 500, "INTERNAL_ERROR"
    message = error.message if isinstance(error, SlideEditingError) else str(error)
    return JSONResponse(
        status_code=status,
        content={"success": False, "error": {"message": message, "code": code, "retryable": is_retryable(error)}},
    )


@router.post("/api/slides/edit")
async def edit_slide(request: SlideEditRequest, service_factory: ServiceFactory = Depends(get_service_factory)):
    """
    Edit one slide from user comments.

    Returns the edited slide plus the change log; pipeline failures come back
    as {success: false, error: {message, code}}.
    """
    logger.info(f"[SLIDE_EDIT] Edit request for slide {request.slide.id} ({len(request.comments)} comments)")
    try:
        service = service_factory(request.userId)
        result = await service.edit_slide(request.slide, request.comments, request.context, request.language)
    except (SlideEditingError, ValueError) as e:
        logger.error(f"[SLIDE_EDIT] Edit failed for slide {request.slide.id}: {e}")
        return error_response(e)

    return {
        "success": True,
        "editedSlide": result.editedSlide.model_dump(),
        "slideChanges": {
            "slideId": request.slide.id,
            "changes": [change.model_dump() for change in result.changes],
            "summary": result.summary.model_dump(),
            "imageProcessing": result.imageProcessing.model_dump() if result.imageProcessing else None,
        },
    }


@router.post("/api/images/temporary/migrate")
async def migrate_temporary_images(
    request: TemporaryImageMigrationRequest,
    store: TemporaryImageService = Depends(get_temporary_image_store),
):
    """Move a slide's temporary images into lesson storage and rewrite its HTML."""
    try:
        updated_html, results = await migrate_temporary_images_to_permanent(
            request.htmlContent, request.temporaryImages, request.lessonId, store
        )
    except SlideEditingError as e:
        logger.error(f"[TEMP_STORAGE] Migration failed for lesson {request.lessonId}: {e}")
        return error_response(e)

    if request.sessionId and results and all(r.success for r in results):
        await store.cleanup_session(request.sessionId)

    return {
        "success": all(r.success for r in results),
        "updatedHtml": updated_html,
        "migrationResults": [r.model_dump() for r in results],
    }
