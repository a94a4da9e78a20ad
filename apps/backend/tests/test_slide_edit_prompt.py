"""Unit tests for slide editing prompt assembly."""

from datetime import datetime, timezone

from agents.prompts.editing.slide_edit_prompt import (
    build_editing_prompt,
    format_comments,
    format_context,
    get_language_name,
)
from models.requests import SlideEditingContext
from models.slide import Slide, SlideComment


class TestFormatComments:
    """Test comment rendering."""

    def test_groups_by_section_and_orders_by_priority(self):
        comments = [
            SlideComment(comment="Make it calmer", sectionType="general", priority="low"),
            SlideComment(comment="Shorter title please", sectionType="title", priority="high"),
            SlideComment(comment="Use bigger fonts", sectionType="general", priority="high"),
        ]
        assert format_comments(comments).splitlines() == [
            "• GENERAL (high priority): Use bigger fonts",
            "• GENERAL (low priority): Make it calmer",
            "• TITLE (high priority): Shorter title please",
        ]

    def test_equal_priority_keeps_input_order(self):
        comments = [
            SlideComment(comment="First request"),
            SlideComment(comment="Second request"),
        ]
        lines = format_comments(comments).splitlines()
        assert lines[0].endswith("First request")
        assert lines[1].endswith("Second request")

    def test_section_id_is_shown(self):
        comment = SlideComment(comment="Fix slide three", sectionType="slide", sectionId="3")
        assert format_comments([comment]) == "• SLIDE #3 (medium priority): Fix slide three"


class TestFormatContext:
    """Test lesson context rendering."""

    def test_full_context(self):
        context = SlideEditingContext(
            ageGroup="6-8 years",
            topic="Weather",
            lessonObjectives=["Name the seasons"],
            slidePosition=2,
            totalSlides=5,
        )
        rendered = format_context(context)
        assert "Age group: 6-8 years" in rendered
        assert "  - Name the seasons" in rendered
        assert "Slide position: 2 of 5" in rendered

    def test_minimal_context(self):
        rendered = format_context(SlideEditingContext(ageGroup="4-6 years", topic="Colors"))
        assert "Lesson objectives" not in rendered
        assert "Slide position" not in rendered


class TestLanguageName:
    """Test language resolution."""

    def test_known_unknown_and_missing(self):
        assert get_language_name("uk") == "Ukrainian"
        assert get_language_name("EN") == "English"
        assert get_language_name("xx") == "xx"
        assert get_language_name(None) == "English"


class TestBuildEditingPrompt:
    """Test the assembled prompt."""

    def test_prompt_contains_every_section(self, sample_comments, sample_context):
        slide = Slide(
            id="s1",
            title="Farm",
            content="Animals",
            htmlContent="<html>\n  <body>\n    <h1>Farm</h1>\n  </body>\n</html>",
        )
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        prompt = build_editing_prompt(slide, sample_comments, sample_context, "uk", now=now)

        assert 'Title: "Farm"' in prompt
        assert "• TITLE (high priority): Make the title more fun" in prompt
        assert "Topic: Farm animals" in prompt
        assert "Current time: 2024-05-01T12:00:00+00:00" in prompt
        assert "**CURRENT HTML (EDIT THIS COMPLETELY):**\n<html><body><h1>Farm</h1></body></html>" in prompt
        assert "MUST be in Ukrainian" in prompt
        assert "IMAGE_PROMPT" in prompt
        assert '"editedHtmlContent"' in prompt
        assert prompt.rstrip().endswith("Generate the JSON now:")

    def test_html_is_kept_verbatim_without_minify(self, sample_comments, sample_context):
        html = "<html>\n  <body></body>\n</html>"
        slide = Slide(title="T", htmlContent=html)
        prompt = build_editing_prompt(slide, sample_comments, sample_context, minify=False)
        assert html in prompt
        assert "MUST be in English" in prompt

    def test_slide_without_html(self, sample_comments, sample_context):
        prompt = build_editing_prompt(Slide(title="T"), sample_comments, sample_context)
        assert "No HTML content" in prompt
        assert "Content: No text content" in prompt
