"""
Turns raw model output into an EditResult.

Fences are stripped, the JSON is parsed through the repair chain, and the
edited HTML is checked for completeness before anything is built from it.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agents.editing.exceptions import FormatError, TruncationError
from agents.editing.json_repair import JsonRepairChain
from models.editing import ChangeSummary, EditResult, SlideChange
from models.slide import Slide, SlideComment
from setup_logging_optimized import get_logger, preview

logger = get_logger(__name__)

_FENCE_RE = re.compile(r'^\s*```[a-zA-Z]*\s*\n?(.*?)\n?\s*```\s*$', re.DOTALL)
_HTML_KEY = '"editedHtmlContent"'

DEFAULT_SECTION = "general"
DEFAULT_DETAILED_DESCRIPTION = "Content updated based on feedback"
DEFAULT_IMPROVEMENT_AREAS = ["Content updated"]


def strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` wrapping if the model added it anyway."""
    text = (text or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        # Opening fence without a closing one (usually a truncated response)
        text = re.sub(r'^```[a-zA-Z]*\s*', "", text)
    return text.strip()


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


class ResponseParser:
    """Parses and validates the model's slide edit response"""

    def __init__(self, repair_chain: Optional[JsonRepairChain] = None):
        self.repair_chain = repair_chain or JsonRepairChain()

    def parse(self, raw: str, original_slide: Slide, comments: List[SlideComment]) -> EditResult:
        cleaned = strip_code_fences(raw)
        parsed, applied = self.repair_chain.parse(cleaned)

        if not isinstance(parsed, dict):
            raise FormatError(
                f"Model response is a JSON {type(parsed).__name__}, expected an object",
                strategies=applied,
            )

        if applied and _HTML_KEY in cleaned and "editedHtmlContent" not in parsed:
            raise TruncationError(
                "Model response was truncated - editedHtmlContent was lost during repair",
                strategies=applied,
                context={"response_length": len(cleaned)},
            )

        if not parsed.get("editedContent") and not parsed.get("editedHtmlContent"):
            raise FormatError(
                "Model did not provide edited content",
                strategies=applied,
                context={"keys": sorted(parsed.keys())},
            )

        html = parsed.get("editedHtmlContent")
        if html and "</html>" not in _as_text(html):
            logger.error(f"[SLIDE_EDIT] Truncated HTML from model, tail: {_as_text(html)[-120:]!r}")
            raise TruncationError(
                "Model response was truncated - HTML incomplete",
                strategies=applied,
                context={"html_length": len(_as_text(html))},
            )

        edited_slide = self._build_slide(parsed, original_slide)
        changes = self._build_changes(parsed.get("changes"), comments)
        summary = self._build_summary(changes, parsed.get("improvementAreas"))

        logger.info(
            f"[SLIDE_EDIT] Parsed response: {len(changes)} changes, "
            f"html={len(edited_slide.htmlContent or '')} chars"
            + (f", repairs={applied}" if applied else "")
        )
        return EditResult(editedSlide=edited_slide, changes=changes, summary=summary)

    def _build_slide(self, parsed: Dict[str, Any], original: Slide) -> Slide:
        data = original.model_dump()
        data.update(
            title=_as_text(parsed.get("editedTitle") or original.title),
            content=_as_text(parsed.get("editedContent") or original.content),
            htmlContent=_as_text(parsed["editedHtmlContent"]) if parsed.get("editedHtmlContent") else original.htmlContent,
            updatedAt=datetime.now(timezone.utc).isoformat(),
        )
        return Slide.model_validate(data)

    def _build_changes(self, raw_changes: Any, comments: List[SlideComment]) -> List[SlideChange]:
        if not isinstance(raw_changes, list):
            if raw_changes is not None:
                logger.warning(f"[SLIDE_EDIT] Ignoring non-list 'changes': {preview(_as_text(raw_changes), 80)}")
            raw_changes = []

        changes = []
        defaulted = 0
        for index, change in enumerate(raw_changes):
            change = change if isinstance(change, dict) else {"shortDescription": change}
            short = change.get("shortDescription")
            detailed = change.get("detailedDescription")
            if not short or not detailed:
                defaulted += 1
            changes.append(SlideChange(
                section=_as_text(change.get("section") or DEFAULT_SECTION),
                shortDescription=_as_text(short or f"Change {index + 1}"),
                detailedDescription=_as_text(detailed or DEFAULT_DETAILED_DESCRIPTION),
                appliedComment=(comments[index] if index < len(comments) else comments[0]) if comments else None,
            ))

        if defaulted:
            logger.warning(f"[SLIDE_EDIT] {defaulted} change entries used placeholder descriptions")
        if not changes:
            logger.warning("[SLIDE_EDIT] Model reported no changes")
        return changes

    def _build_summary(self, changes: List[SlideChange], improvement_areas: Any) -> ChangeSummary:
        if isinstance(improvement_areas, list) and improvement_areas:
            areas = [_as_text(area) for area in improvement_areas]
        else:
            areas = list(DEFAULT_IMPROVEMENT_AREAS)
        return ChangeSummary(
            totalChanges=len(changes),
            affectedSections=list(dict.fromkeys(change.section for change in changes)),
            improvementAreas=areas,
        )
