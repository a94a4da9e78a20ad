from collections import OrderedDict
from datetime import datetime, timezone
from typing import List, Optional

from models.requests import SlideEditingContext
from models.slide import Slide, SlideComment
from utils.html_minifier import minify_for_ai

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

LANGUAGE_NAMES = {
    "en": "English",
    "uk": "Ukrainian",
    "pl": "Polish",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
}


def get_language_name(language: Optional[str]) -> str:
    if not language:
        return LANGUAGE_NAMES["en"]
    return LANGUAGE_NAMES.get(language.lower(), language)


def format_comments(comments: List[SlideComment]) -> str:
    """
    Render comments as bullet lines grouped by section type.

    Groups keep first-appearance order; inside a group high priority comes
    first, ties keep their input order.
    """
    groups: "OrderedDict[str, List[SlideComment]]" = OrderedDict()
    for comment in comments:
        groups.setdefault(comment.sectionType or "general", []).append(comment)

    lines = []
    for section, items in groups.items():
        for comment in sorted(items, key=lambda c: PRIORITY_ORDER.get(c.priority, 1)):
            target = f" #{comment.sectionId}" if comment.sectionId else ""
            lines.append(f"• {section.upper()}{target} ({comment.priority} priority): {comment.comment}")
    return "\n".join(lines)


def format_context(context: SlideEditingContext) -> str:
    lines = [f"Age group: {context.ageGroup}", f"Topic: {context.topic}"]
    if context.lessonObjectives:
        lines.append("Lesson objectives:")
        lines.extend(f"  - {objective}" for objective in context.lessonObjectives)
    if context.slidePosition is not None and context.totalSlides:
        lines.append(f"Slide position: {context.slidePosition} of {context.totalSlides}")
    elif context.slidePosition is not None:
        lines.append(f"Slide position: {context.slidePosition}")
    return "\n".join(lines)


def get_image_marker_rules() -> str:
    return """
**IMAGES IN THE HTML:**
Existing images were replaced with metadata comments to save space:
  <!-- IMAGE_METADATA: "description" ID: "IMG_META_1" WIDTH: 400 HEIGHT: 300 -->
- To KEEP an existing image, leave its IMAGE_METADATA comment exactly as it is (same ID). It is restored automatically.
- To REPLACE an image, remove its IMAGE_METADATA comment and put an IMAGE_PROMPT comment where the new image belongs.
- To ADD an image, insert an IMAGE_PROMPT comment in this EXACT format:
  <!-- IMAGE_PROMPT: "colorful cartoon elephant playing in a playground" WIDTH: 512 HEIGHT: 512 -->
- Always quote the description and always give numeric WIDTH and HEIGHT.
- WIDTH and HEIGHT should be multiples of 16 between 128 and 1536.
- Never write <img> tags with made-up sources and never add "image will be generated here" placeholders.
"""


def get_output_contract() -> str:
    return """
**RETURN FORMAT - A SINGLE JSON OBJECT, NO MARKDOWN:**
{
  "editedTitle": "new title",
  "editedContent": "new short text content",
  "editedHtmlContent": "COMPLETE HTML - starts with <!DOCTYPE html> and ends with </html>",
  "changes": [{"section": "general", "shortDescription": "what changed", "detailedDescription": "how and why it changed"}],
  "improvementAreas": ["what was improved"]
}

**CRITICAL REQUIREMENTS:**
1. editedHtmlContent MUST be the COMPLETE document from <!DOCTYPE html> to </html>. Never truncate it.
2. Apply ALL of the feedback above.
3. Return ONLY the JSON object: no ```json fences, no text before or after it.
4. Start the response with { and end it with }.
5. JSON escaping inside string values:
   - escape double quotes as \\"
   - escape backslashes as \\\\
   - write newlines as \\n and tabs as \\t
6. Add one "changes" entry per distinct modification you made.
"""


def build_editing_prompt(
    slide: Slide,
    comments: List[SlideComment],
    context: SlideEditingContext,
    language: Optional[str] = None,
    minify: bool = True,
    now: Optional[datetime] = None,
) -> str:
    """Assemble the full slide editing prompt."""
    html = slide.htmlContent or ""
    if html and minify:
        html = minify_for_ai(html)
    language_name = get_language_name(language)
    timestamp = (now or datetime.now(timezone.utc)).isoformat()

    return f"""You are an expert educational content editor. Edit this slide based on the user's feedback and return the COMPLETE result.

**SLIDE TO EDIT:**
Title: "{slide.title}"
Content: {slide.content or 'No text content'}

**USER FEEDBACK:**
{format_comments(comments)}

**CONTEXT:**
{format_context(context)}
Current time: {timestamp}

**CURRENT HTML (EDIT THIS COMPLETELY):**
{html or 'No HTML content'}

**LANGUAGE RULES:**
- User-facing text (titles, instructions, text for children) MUST be in {language_name}.
- Technical content MUST stay in ENGLISH: ids, CSS classes, data attributes, alt text, data-image-prompt values and IMAGE_PROMPT descriptions.
- Example: <h1>Корівка каже МУ!</h1> next to alt="cartoon cow" and data-image-prompt="happy cartoon cow in a green meadow".
- Keep everything age-appropriate for {context.ageGroup}.
{get_image_marker_rules()}{get_output_contract()}
Generate the JSON now:"""
