"""Pytest configuration and fixtures."""

import json
import os
from typing import List, Optional

import pytest

os.environ.setdefault("LANGSMITH_TRACING", "false")
os.environ.setdefault("LANGCHAIN_TRACING_V2", "false")

from agents.core.interfaces import (  # noqa: E402
    IImageGenerator,
    ImageGenerationResponse,
    ITemporaryImageStore,
    ITextModel,
)
from agents.editing.config import EditingConfig, StorageConfig  # noqa: E402
from agents.editing.image_resolution import ImageResolutionStage  # noqa: E402
from agents.editing.slide_editing_service import SlideEditingService  # noqa: E402
from models.editing import ImageMigrationResult, TemporaryImageInfo  # noqa: E402
from models.requests import SlideEditingContext  # noqa: E402
from models.slide import Slide, SlideComment  # noqa: E402
from utils.retry import RetryPolicy  # noqa: E402
from utils.task_queue import BoundedTaskQueue  # noqa: E402

# 1x1 PNG
TINY_PNG_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="


def wrap_html(body: str) -> str:
    return f"<!DOCTYPE html><html><head><title>Slide</title></head><body>{body}</body></html>"


class SleepRecorder:
    """Drop-in for asyncio.sleep that records delays instead of waiting"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeTextModel(ITextModel):
    """
    Returns queued responses in order. An Exception entry is raised instead,
    a callable entry is called with the prompt.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.prompts: List[str] = []

    async def call(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response


def model_response(html: Optional[str] = None, **fields) -> str:
    payload = {
        "editedTitle": "Funny Farm",
        "editedContent": "Meet the silly animals",
        "changes": [{"section": "title", "shortDescription": "Funnier title", "detailedDescription": "Renamed"}],
        "improvementAreas": ["Engagement"],
    }
    if html is not None:
        payload["editedHtmlContent"] = html
    payload.update(fields)
    return json.dumps(payload)


class FakeImageGenerator(IImageGenerator):
    """Succeeds with a tiny PNG unless the prompt is scripted to fail"""

    def __init__(self, failures_by_prompt: Optional[dict] = None):
        # prompt -> number of leading failures (-1 fails forever)
        self.failures_by_prompt = dict(failures_by_prompt or {})
        self.calls: List[tuple] = []

    async def generate_image(self, prompt: str, width: int, height: int) -> ImageGenerationResponse:
        self.calls.append((prompt, width, height))
        remaining = self.failures_by_prompt.get(prompt, 0)
        if remaining:
            if remaining > 0:
                self.failures_by_prompt[prompt] = remaining - 1
            return ImageGenerationResponse.failed("model overloaded", model="fake-image")
        return ImageGenerationResponse(success=True, image=TINY_PNG_B64, model="fake-image")


class FakeTemporaryStore(ITemporaryImageStore):
    """In-memory temporary image store"""

    def __init__(self, fail_uploads: bool = False, fail_migrations_for: Optional[set] = None):
        self.fail_uploads = fail_uploads
        self.fail_migrations_for = set(fail_migrations_for or ())
        self.uploads: List[TemporaryImageInfo] = []
        self.cleaned_sessions: List[str] = []

    async def upload_temporary_image(self, image_base64, prompt, width, height, index, session_id):
        if self.fail_uploads:
            return None
        file_name = f"img_{index}_1000.webp"
        info = TemporaryImageInfo(
            tempUrl=f"https://storage.test/temp-images/temp/u1/{session_id}/{file_name}",
            fileName=file_name,
            filePath=f"temp/u1/{session_id}/{file_name}",
            prompt=prompt,
            width=width,
            height=height,
            sessionId=session_id,
        )
        self.uploads.append(info)
        return info

    async def migrate_to_permanent(self, images, lesson_id):
        results = []
        for position, image in enumerate(images):
            if image.tempUrl in self.fail_migrations_for:
                results.append(ImageMigrationResult(tempUrl=image.tempUrl, success=False, error="Download failed: boom"))
            else:
                results.append(ImageMigrationResult(
                    tempUrl=image.tempUrl,
                    permanentUrl=f"https://storage.test/lesson-assets/lessons/{lesson_id}/slide-{position + 1}.webp",
                    success=True,
                ))
        return results

    async def cleanup_session(self, session_id):
        self.cleaned_sessions.append(session_id)
        return True


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def editing_config():
    """Default configuration with temporary storage off"""
    return EditingConfig(storage=StorageConfig(use_temporary_storage=False))


@pytest.fixture
def image_generator():
    return FakeImageGenerator()


@pytest.fixture
def temporary_store():
    return FakeTemporaryStore()


@pytest.fixture
def make_stage(editing_config, sleep_recorder):
    """Build an ImageResolutionStage whose retries and pauses never wait"""

    def _make(generator, temporary_store=None, config=None):
        return ImageResolutionStage(
            image_generator=generator,
            temporary_store=temporary_store,
            queue=BoundedTaskQueue(concurrency=1, delay_between_tasks=2.0, sleep=sleep_recorder),
            retry_policy=RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleep_recorder),
            config=config or editing_config,
        )

    return _make


@pytest.fixture
def make_service(editing_config, make_stage):
    def _make(text_model, generator=None, temporary_store=None):
        return SlideEditingService(
            model_client=text_model,
            image_stage=make_stage(generator or FakeImageGenerator(), temporary_store),
            config=editing_config,
            clock=lambda: 1700000000.0,
        )

    return _make


@pytest.fixture
def sample_slide():
    return Slide(
        id="slide-1",
        title="Farm Animals",
        content="Meet the animals",
        htmlContent=wrap_html("<h1>Farm Animals</h1><p>Meet the animals</p>"),
    )


@pytest.fixture
def sample_comments():
    return [
        SlideComment(comment="Make the title more fun", sectionType="title", priority="high"),
        SlideComment(comment="Add a picture of a cow", sectionType="content"),
    ]


@pytest.fixture
def sample_context():
    return SlideEditingContext(ageGroup="4-6 years", topic="Farm animals", lessonObjectives=["Name three animals"])


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: end-to-end pipeline tests with faked providers")
