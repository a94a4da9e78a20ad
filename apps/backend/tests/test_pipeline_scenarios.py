"""End-to-end editing scenarios with faked text and image models."""

import json

import pytest
from conftest import TINY_PNG_B64, FakeImageGenerator, FakeTextModel, model_response, wrap_html

from agents.editing.exceptions import TruncationError
from agents.editing.result_assembler import assemble
from models.editing import ChangeSummary, ImageProcessingInfo, SlideChange
from models.slide import Slide, SlideComment

pytestmark = pytest.mark.integration

ORIGINAL_IMG = f'<img src="data:image/png;base64,{TINY_PNG_B64}" alt="sunny farm" width="400" height="300">'
KEPT_MARKER = '<!-- IMAGE_METADATA: "sunny farm" ID: "IMG_META_1" WIDTH: 400 HEIGHT: 300 -->'


@pytest.fixture
def title_comment():
    return [SlideComment(sectionType="slide", comment="make the title more exciting", priority="medium")]


async def test_title_edit_without_images(make_service, sample_slide, title_comment, sample_context):
    response = model_response(wrap_html("<h1>Amazing Farm Adventure!</h1>"), editedTitle="Amazing Farm Adventure!")
    generator = FakeImageGenerator()

    result = await make_service(FakeTextModel([response]), generator).edit_slide(sample_slide, title_comment, sample_context)

    assert result.editedSlide.title != sample_slide.title
    assert len(result.changes) >= 1
    assert result.imageProcessing.imagesGenerated == 0
    assert generator.calls == []


async def test_untouched_marker_restores_identical_bytes(make_service, title_comment, sample_context):
    slide = Slide(id="s1", title="Farm", htmlContent=wrap_html("<h1>Farm</h1>" + ORIGINAL_IMG))
    model = FakeTextModel([model_response(wrap_html("<h1>Wow, a Farm!</h1>" + KEPT_MARKER))])

    result = await make_service(model).edit_slide(slide, title_comment, sample_context)

    assert KEPT_MARKER in model.prompts[0]
    assert ORIGINAL_IMG in result.editedSlide.htmlContent
    assert result.imageProcessing.imagesGenerated == 0
    assert result.imageProcessing.imagesKept == 1


async def test_replaced_marker_dispatches_new_prompt(make_service, title_comment, sample_context):
    slide = Slide(id="s1", title="Farm", htmlContent=wrap_html("<h1>Farm</h1>" + ORIGINAL_IMG))
    new_marker = '<!-- IMAGE_PROMPT: "red tractor in a wheat field" WIDTH: 512 HEIGHT: 384 -->'
    generator = FakeImageGenerator()
    model = FakeTextModel([model_response(wrap_html("<h1>Трактор!</h1>" + new_marker))])

    result = await make_service(model, generator).edit_slide(slide, title_comment, sample_context, language="uk")

    assert generator.calls == [("red tractor in a wheat field", 512, 384)]
    assert TINY_PNG_B64 in result.editedSlide.htmlContent
    assert "sunny farm" not in result.editedSlide.htmlContent
    assert result.imageProcessing.imagesKept == 0
    assert result.imageProcessing.imagesGenerated == 1


async def test_truncated_html_is_rejected(make_service, sample_slide, title_comment, sample_context):
    response = model_response("<!DOCTYPE html><html><body><h1>Amazing <spa")

    with pytest.raises(TruncationError):
        await make_service(FakeTextModel([response])).edit_slide(sample_slide, title_comment, sample_context)

    assert sample_slide.title == "Farm Animals"


async def test_fenced_response_with_unescaped_quote(make_service, sample_slide, title_comment, sample_context):
    payload = json.loads(model_response(wrap_html("<h1>Farm</h1>")))
    payload["editedTitle"] = "PLACEHOLDER"
    raw = "```json\n" + json.dumps(payload).replace("PLACEHOLDER", 'The "Best" Farm') + "\n```"

    result = await make_service(FakeTextModel([raw])).edit_slide(sample_slide, title_comment, sample_context)

    assert result.editedSlide.title == 'The "Best" Farm'


async def test_off_grid_dimensions_are_corrected(make_service, sample_slide, title_comment, sample_context):
    marker = '<!-- IMAGE_PROMPT: "smiling sun" WIDTH: 300 HEIGHT: 300 -->'
    generator = FakeImageGenerator()
    model = FakeTextModel([model_response(wrap_html(marker))])

    result = await make_service(model, generator).edit_slide(sample_slide, title_comment, sample_context)

    assert generator.calls == [("smiling sun", 304, 304)]
    assert 'width="304" height="304"' in result.editedSlide.htmlContent


class TestAssemble:
    """Test the result assembler."""

    def test_substitutes_resolved_html(self):
        slide = Slide(id="s1", title="T", htmlContent="<html>markers</html>")
        stats = ImageProcessingInfo(imagesKept=1, sessionId="sess")
        changes = [SlideChange(shortDescription="a", detailedDescription="b")]

        result = assemble(slide, "<html>images</html>", changes, ChangeSummary(totalChanges=1), stats)

        assert result.editedSlide.htmlContent == "<html>images</html>"
        assert slide.htmlContent == "<html>markers</html>"
        assert result.imageProcessing is stats
        assert result.changes == changes

    def test_missing_html_keeps_slide(self):
        slide = Slide(id="s1", title="T")
        result = assemble(slide, None, [], ChangeSummary())
        assert result.editedSlide.htmlContent is None
        assert result.imageProcessing is None
