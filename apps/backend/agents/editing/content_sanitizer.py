"""
Base64 image <-> metadata marker substitution for slide HTML.

Inline base64 images dominate the token count of a slide. Before the HTML is
sent to the text model every such <img> is replaced by an IMAGE_METADATA
marker; afterwards markers the model kept are swapped back for the original
tag, byte for byte. Pure text transform, no I/O.
"""

import base64
import binascii
import io
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from PIL import Image, UnidentifiedImageError

from agents.config import DEFAULT_IMAGE_HEIGHT, DEFAULT_IMAGE_WIDTH
from agents.editing.image_markers import METADATA_MARKER_RE, format_metadata_marker
from setup_logging_optimized import get_logger

logger = get_logger(__name__)

BASE64_IMG_RE = re.compile(
    r'<img\b[^>]*?\bsrc\s*=\s*(["\'])data:image/([a-zA-Z0-9.+-]+);base64,([^"\']+)\1[^>]*>',
    re.IGNORECASE,
)
_STYLE_SIZE_RE = {
    "width": re.compile(r'(?:^|;)\s*width\s*:\s*(\d+)(?:\.\d+)?px', re.IGNORECASE),
    "height": re.compile(r'(?:^|;)\s*height\s*:\s*(\d+)(?:\.\d+)?px', re.IGNORECASE),
}
_LEADING_INT_RE = re.compile(r'^\s*(\d+)')

MARKER_ID_PREFIX = "IMG_META_"


@dataclass
class ImageMetadataInfo:
    """Everything needed to put a stripped image back"""
    id: str
    original_base64: str
    mime_type: str
    description: str
    width: int
    height: int
    full_img_tag: str
    alt: Optional[str] = None


@dataclass
class StripResult:
    stripped_html: str
    image_map: Dict[str, ImageMetadataInfo]
    replaced_count: int
    original_html: str = ""

    @property
    def saved_bytes(self) -> int:
        return len(self.original_html) - len(self.stripped_html)


@dataclass
class RestoreResult:
    html: str
    kept_ids: List[str] = field(default_factory=list)
    missing_ids: List[str] = field(default_factory=list)


def _attr_dimension(attrs: dict, name: str) -> Optional[int]:
    value = attrs.get(name)
    if value:
        match = _LEADING_INT_RE.match(str(value))
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
    style = attrs.get("style") or ""
    match = _STYLE_SIZE_RE[name].search(style)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))
    return None


def _decoded_size(data: str) -> Optional[Tuple[int, int]]:
    try:
        raw = base64.b64decode(data, validate=False)
        with Image.open(io.BytesIO(raw)) as image:
            return image.size
    except (binascii.Error, UnidentifiedImageError, OSError, ValueError):
        return None


class ContentSanitizer:
    """Strips inline base64 images into metadata markers and restores them"""

    def __init__(self, default_width: int = DEFAULT_IMAGE_WIDTH, default_height: int = DEFAULT_IMAGE_HEIGHT):
        self.default_width = default_width
        self.default_height = default_height

    def _describe(self, img_tag: str, mime_type: str, data: str, marker_id: str) -> ImageMetadataInfo:
        img = BeautifulSoup(img_tag, "html.parser").find("img")
        attrs = dict(img.attrs) if img is not None else {}
        alt = attrs.get("alt") or None
        description = attrs.get("data-image-prompt") or alt or "image"

        width = _attr_dimension(attrs, "width")
        height = _attr_dimension(attrs, "height")
        if width is None or height is None:
            decoded = _decoded_size(data)
            if decoded:
                # Keep the aspect ratio when only one side was declared
                if width is None and height is None:
                    width, height = decoded
                elif width is None:
                    width = max(1, round(decoded[0] * height / decoded[1]))
                else:
                    height = max(1, round(decoded[1] * width / decoded[0]))
        return ImageMetadataInfo(
            id=marker_id,
            original_base64=data,
            mime_type=f"image/{mime_type.lower()}",
            description=description,
            width=width or self.default_width,
            height=height or self.default_height,
            full_img_tag=img_tag,
            alt=alt,
        )

    def strip(self, html: str) -> StripResult:
        """Replace every base64 <img> with an IMAGE_METADATA marker (ids IMG_META_1..N)."""
        if not html:
            return StripResult(stripped_html=html or "", image_map={}, replaced_count=0, original_html=html or "")

        image_map: Dict[str, ImageMetadataInfo] = {}

        def _replace(match: re.Match) -> str:
            marker_id = f"{MARKER_ID_PREFIX}{len(image_map) + 1}"
            info = self._describe(match.group(0), match.group(2), match.group(3), marker_id)
            image_map[marker_id] = info
            logger.debug(
                f"[IMAGE_META] {marker_id}: '{info.description[:50]}' {info.width}x{info.height} "
                f"({len(info.original_base64)} base64 chars)"
            )
            return format_metadata_marker(info.description, marker_id, info.width, info.height)

        stripped = BASE64_IMG_RE.sub(_replace, html)
        result = StripResult(
            stripped_html=stripped,
            image_map=image_map,
            replaced_count=len(image_map),
            original_html=html,
        )
        if image_map:
            logger.info(
                f"[IMAGE_META] Replaced {result.replaced_count} base64 images, saved {result.saved_bytes} chars "
                f"(~{result.saved_bytes // 4} tokens)"
            )
        return result

    def restore_images(self, html: str, image_map: Dict[str, ImageMetadataInfo]) -> RestoreResult:
        """Swap known metadata markers back to their original <img> tags; leave unknown ids in place."""
        kept: List[str] = []
        missing: List[str] = []

        def _restore(match: re.Match) -> str:
            marker_id = match.group(2)
            info = image_map.get(marker_id)
            if info is None:
                missing.append(marker_id)
                return match.group(0)
            kept.append(marker_id)
            return info.full_img_tag

        restored = METADATA_MARKER_RE.sub(_restore, html or "")
        if kept or missing:
            logger.info(f"[IMAGE_RESTORE] Restored {len(kept)} images, {len(missing)} unknown markers left")
        return RestoreResult(html=restored, kept_ids=kept, missing_ids=missing)

    def restore(self, html: str, image_map: Dict[str, ImageMetadataInfo]) -> str:
        return self.restore_images(html, image_map).html


_default_sanitizer = ContentSanitizer()


def strip(html: str) -> StripResult:
    return _default_sanitizer.strip(html)


def restore(html: str, image_map: Dict[str, ImageMetadataInfo]) -> str:
    return _default_sanitizer.restore(html, image_map)
