"""
Image marker micro-format.

Two HTML comments stand in for images while slide HTML travels through the
text model:

    <!-- IMAGE_METADATA: "desc" ID: "IMG_META_1" WIDTH: 400 HEIGHT: 300 -->
    <!-- IMAGE_PROMPT: "desc" WIDTH: 512 HEIGHT: 512 -->

The regular expressions and format functions below are the only place that
knows this syntax; everything else goes through find_*/format_*.
"""

import math
import re
from dataclasses import dataclass
from typing import List, Tuple

from agents.config import IMAGE_DIMENSION_STEP, IMAGE_MAX_DIMENSION, IMAGE_MIN_DIMENSION

METADATA_MARKER_RE = re.compile(
    r'<!--\s*IMAGE_METADATA:\s*"([^"]*)"\s+ID:\s*"([^"]+)"\s+WIDTH:\s*(\d+)\s+HEIGHT:\s*(\d+)\s*-->'
)
PROMPT_MARKER_RE = re.compile(
    r'<!--\s*IMAGE_PROMPT:\s*"([^"]*)"\s+WIDTH:\s*(\d+)\s+HEIGHT:\s*(\d+)\s*-->'
)
# Quick containment check used by the minifier to keep marker comments
ANY_MARKER_RE = re.compile(r'<!--\s*IMAGE_(?:METADATA|PROMPT):')


@dataclass
class MetadataMarker:
    """Stand-in for an existing image whose bytes were stripped"""
    description: str
    id: str
    width: int
    height: int
    raw: str = ""
    start: int = -1

    @property
    def end(self) -> int:
        return self.start + len(self.raw)


@dataclass
class PromptMarker:
    """Request for a new image"""
    description: str
    width: int
    height: int
    raw: str = ""
    start: int = -1

    @property
    def end(self) -> int:
        return self.start + len(self.raw)


def _clean_description(description: str) -> str:
    # Quotes would end the description early and "--" would end the comment
    cleaned = (description or "").replace('"', "'")
    while "--" in cleaned:
        cleaned = cleaned.replace("--", "-")
    return " ".join(cleaned.split())


def format_metadata_marker(description: str, marker_id: str, width: int, height: int) -> str:
    return (
        f'<!-- IMAGE_METADATA: "{_clean_description(description)}" '
        f'ID: "{marker_id}" WIDTH: {int(width)} HEIGHT: {int(height)} -->'
    )


def format_prompt_marker(description: str, width: int, height: int) -> str:
    return f'<!-- IMAGE_PROMPT: "{_clean_description(description)}" WIDTH: {int(width)} HEIGHT: {int(height)} -->'


def find_metadata_markers(html: str) -> List[MetadataMarker]:
    """All metadata markers in document order."""
    return [
        MetadataMarker(
            description=m.group(1),
            id=m.group(2),
            width=int(m.group(3)),
            height=int(m.group(4)),
            raw=m.group(0),
            start=m.start(),
        )
        for m in METADATA_MARKER_RE.finditer(html or "")
    ]


def find_prompt_markers(html: str) -> List[PromptMarker]:
    """All prompt markers in document order."""
    return [
        PromptMarker(
            description=m.group(1),
            width=int(m.group(2)),
            height=int(m.group(3)),
            raw=m.group(0),
            start=m.start(),
        )
        for m in PROMPT_MARKER_RE.finditer(html or "")
    ]


def has_markers(html: str) -> bool:
    return bool(ANY_MARKER_RE.search(html or ""))


def _normalize_one(value: int) -> int:
    # Round half up to the nearest step, then clamp
    rounded = int(math.floor(value / IMAGE_DIMENSION_STEP + 0.5)) * IMAGE_DIMENSION_STEP
    return max(IMAGE_MIN_DIMENSION, min(IMAGE_MAX_DIMENSION, rounded))


def normalize_dimensions(width: int, height: int) -> Tuple[int, int]:
    """
    Snap image dimensions to what image providers accept.

    Each side is rounded to the nearest multiple of 16 and clamped to
    [128, 1536]. Valid input passes through unchanged, so the function is
    idempotent: 300x300 -> 304x304, 2000x50 -> 1536x128.
    """
    return _normalize_one(width), _normalize_one(height)
