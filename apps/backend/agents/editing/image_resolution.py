"""
Image resolution for edited slide HTML.

After the model edit, the HTML can hold two kinds of image markers:

- IMAGE_METADATA markers the model kept: restored to the original <img>.
- IMAGE_PROMPT markers: new images. Each one is generated through the
  bounded queue (one at a time, fixed pause) with per-image retries, then
  replaced by an <img> or, when generation keeps failing, by a visible
  placeholder block.

Metadata markers whose id is unknown (the model invented or altered the
id) are turned into prompt markers, so the image is regenerated from its
description instead of lingering as raw comment text.

resolve() never raises. Unexpected errors leave the HTML as far as it got
and are reported in processingErrors.
"""

import html as html_lib
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from agents.core.interfaces import IImageGenerator, ImageGenerationResponse, ITemporaryImageStore
from agents.editing.config import EditingConfig, get_config
from agents.editing.content_sanitizer import ContentSanitizer, ImageMetadataInfo
from agents.editing.exceptions import ImageGenerationError
from agents.editing.image_markers import (
    METADATA_MARKER_RE,
    PROMPT_MARKER_RE,
    find_prompt_markers,
    format_prompt_marker,
    normalize_dimensions,
)
from models.editing import ImageProcessingInfo, TemporaryImageInfo
from setup_logging_optimized import get_logger
from utils.retry import RetryExhausted, RetryPolicy
from utils.task_queue import BoundedTaskQueue

logger = get_logger(__name__)

_STRAY_PLACEHOLDER_RE = re.compile(
    r'<div\b[^>]*>\s*(?:🖼️|🖼)?[^<]*Image will be generated here[^<]*</div>',
    re.IGNORECASE,
)


@dataclass
class ImageRequest:
    description: str
    width: int
    height: int
    raw: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.raw)


@dataclass
class GeneratedImage:
    request: ImageRequest
    response: Optional[ImageGenerationResponse] = None
    temporary: Optional[TemporaryImageInfo] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.response is not None and self.response.success and self.error is None


@dataclass
class ImageResolution:
    html: str
    stats: ImageProcessingInfo
    generated_images: List[GeneratedImage] = field(default_factory=list)

    @property
    def temporary_images(self) -> List[TemporaryImageInfo]:
        return self.stats.temporaryImages


def _attr(value: str) -> str:
    return html_lib.escape(value or "", quote=True)


def render_image(image: GeneratedImage, session_id: str) -> str:
    request = image.request
    response = image.response
    if image.temporary is not None:
        src, storage_type, temp_url = image.temporary.tempUrl, "temporary", image.temporary.tempUrl
    else:
        src, storage_type, temp_url = f"data:{response.mime_type};base64,{response.image}", "base64", ""
    return (
        '<div class="image-container" style="max-width: 100%; margin: 15px auto; display: flex; '
        'justify-content: center; align-items: center; box-sizing: border-box;">'
        f'<img src="{_attr(src)}" alt="{_attr(request.description)}" '
        f'width="{request.width}" height="{request.height}" '
        'style="max-width: 100%; height: auto; border-radius: 12px; box-shadow: 0 4px 16px rgba(0,0,0,0.15); '
        'display: block; object-fit: cover;" loading="lazy" '
        f'data-prompt="{_attr(request.description)}" data-model="{_attr(response.model or "")}" '
        f'data-storage-type="{storage_type}" data-temp-url="{_attr(temp_url)}" '
        f'data-session-id="{_attr(session_id if storage_type == "temporary" else "")}" />'
        '</div>'
    )


def render_failure_placeholder(request: ImageRequest, error: str) -> str:
    short = request.description[:60] + ("..." if len(request.description) > 60 else "")
    return (
        f'<div class="image-placeholder" style="width: {request.width}px; height: {request.height}px; '
        'max-width: 100%; background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); '
        'border: 3px dashed rgba(255,255,255,0.3); border-radius: 16px; display: flex; flex-direction: column; '
        'align-items: center; justify-content: center; color: white; text-align: center; font-size: 16px; '
        'margin: 15px auto; overflow: hidden; box-sizing: border-box;" '
        f'data-failed-prompt="{_attr(request.description)}">'
        '<div style="font-size: 32px; margin-bottom: 8px;">🎨</div>'
        '<div style="font-weight: bold; margin-bottom: 4px;">Image generation failed</div>'
        f'<div style="font-size: 12px; opacity: 0.8;">{html_lib.escape(short)}</div>'
        f'<div style="font-size: 10px; opacity: 0.6; margin-top: 4px;">{html_lib.escape(error[:120])}</div>'
        '</div>'
    )


def remove_stray_placeholders(html: str) -> str:
    """Drop "Image will be generated here" divs the model sometimes adds on its own."""
    return _STRAY_PLACEHOLDER_RE.sub("", html)


class ImageResolutionStage:
    """Restores kept images and generates new ones for an edited slide"""

    def __init__(
        self,
        image_generator: IImageGenerator,
        temporary_store: Optional[ITemporaryImageStore] = None,
        queue: Optional[BoundedTaskQueue] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sanitizer: Optional[ContentSanitizer] = None,
        config: Optional[EditingConfig] = None,
    ):
        config = config or get_config()
        self.image_generator = image_generator
        self.temporary_store = temporary_store
        self.fallback_to_base64 = config.storage.fallback_to_base64
        self.queue = queue or BoundedTaskQueue(
            concurrency=1,
            delay_between_tasks=config.images.delay_between_images,
        )
        # Image failures are retried regardless of kind
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=config.retry.image_max_attempts,
            base_delay=config.retry.image_base_delay,
        )
        self.sanitizer = sanitizer or ContentSanitizer()

    @staticmethod
    def convert_orphaned_metadata(html: str) -> Tuple[str, int]:
        """Rewrite remaining IMAGE_METADATA markers as IMAGE_PROMPT markers."""
        count = 0

        def _convert(match: re.Match) -> str:
            nonlocal count
            count += 1
            logger.info(f"[IMAGE_RESOLVE] Unknown image id {match.group(2)!r}, regenerating from description")
            return format_prompt_marker(match.group(1), int(match.group(3)), int(match.group(4)))

        return METADATA_MARKER_RE.sub(_convert, html), count

    @staticmethod
    def collect_requests(html: str) -> Tuple[str, List[ImageRequest]]:
        """Drop prompt markers with empty descriptions and return the rest, normalized, in document order."""
        cleaned = PROMPT_MARKER_RE.sub(lambda m: m.group(0) if m.group(1).strip() else "", html)
        requests = []
        for marker in find_prompt_markers(cleaned):
            width, height = normalize_dimensions(marker.width, marker.height)
            if (width, height) != (marker.width, marker.height):
                logger.info(f"[IMAGE_RESOLVE] Adjusted {marker.width}x{marker.height} -> {width}x{height}")
            requests.append(ImageRequest(
                description=marker.description.strip(),
                width=width,
                height=height,
                raw=marker.raw,
                start=marker.start,
            ))
        return cleaned, requests

    async def _generate(self, index: int, request: ImageRequest, session_id: str) -> GeneratedImage:
        async def _attempt() -> ImageGenerationResponse:
            response = await self.image_generator.generate_image(request.description, request.width, request.height)
            if not response.success or not response.image:
                raise ImageGenerationError(response.error or "No image returned", prompt=request.description)
            return response

        try:
            response = await self.retry_policy.run(_attempt, f"image {index + 1}")
        except RetryExhausted as e:
            return GeneratedImage(request=request, error=str(e.last_error))

        temporary = None
        if self.temporary_store is not None:
            try:
                temporary = await self.temporary_store.upload_temporary_image(
                    response.image, request.description, request.width, request.height, index, session_id
                )
            except Exception as e:
                logger.warning(f"[IMAGE_RESOLVE] Temporary upload raised for image {index + 1}: {e}")
            if temporary is None and not self.fallback_to_base64:
                return GeneratedImage(request=request, response=response, error="Temporary storage upload failed")
        return GeneratedImage(request=request, response=response, temporary=temporary)

    async def resolve(self, html: str, image_map: Dict[str, ImageMetadataInfo], session_id: str) -> ImageResolution:
        stats = ImageProcessingInfo(sessionId=session_id)
        current = html or ""
        generated: List[GeneratedImage] = []
        try:
            restored = self.sanitizer.restore_images(current, image_map or {})
            current = restored.html
            stats.imagesKept = len(restored.kept_ids)

            current, orphaned = self.convert_orphaned_metadata(current)
            current, requests = self.collect_requests(current)
            if requests:
                logger.info(f"[IMAGE_RESOLVE] Generating {len(requests)} images for session {session_id}")

            generated = await self.queue.map(
                requests, lambda index, request: self._generate(index, request, session_id)
            )

            # Replace from the end so earlier offsets stay valid
            resolved = current
            for index in range(len(generated) - 1, -1, -1):
                image = generated[index]
                if image.success:
                    replacement = render_image(image, session_id)
                else:
                    replacement = render_failure_placeholder(image.request, image.error or "Generation failed")
                resolved = resolved[:image.request.start] + replacement + resolved[image.request.end:]
            current = remove_stray_placeholders(resolved)

            for index, image in enumerate(generated):
                if image.success:
                    stats.imagesGenerated += 1
                    if image.temporary is not None:
                        stats.temporaryImages.append(image.temporary)
                else:
                    stats.imagesFailed += 1
                    stats.processingErrors.append(
                        f"Image {index + 1} ('{image.request.description[:50]}'): {image.error}"
                    )
            logger.info(
                f"[IMAGE_RESOLVE] kept={stats.imagesKept} generated={stats.imagesGenerated} "
                f"failed={stats.imagesFailed} regenerated_orphans={orphaned}"
            )
        except Exception as e:
            logger.error(f"[IMAGE_RESOLVE] Image processing failed: {e}", exc_info=True)
            stats.processingErrors.append(f"Image processing failed: {e}")

        return ImageResolution(html=current, stats=stats, generated_images=list(generated))
