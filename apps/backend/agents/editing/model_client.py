"""
Text model client for slide editing (Gemini via google-genai).
"""

import asyncio
from typing import Any, Iterable, Optional

import langsmith as ls
from google.genai import errors as genai_errors
from google.genai import types

from agents.core.interfaces import ITextModel
from agents.editing.config import DEFAULT_TRANSIENT_MARKERS, EditingConfig, ModelConfig, get_config
from agents.editing.exceptions import ProviderError
from config.logging_config import get_logging_config
from setup_logging_optimized import get_logger, preview
from utils.retry import RetryExhausted, RetryPolicy

logger = get_logger(__name__)

TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)


class EmptyModelResponse(Exception):
    """The model answered without any text"""


class TransientErrorClassifier:
    """
    Decides whether a provider error is worth retrying.

    SDK server errors and rate-limit/unavailable status codes are transient.
    Anything else is matched against message substrings, which is fragile:
    providers reword messages between SDK versions, so the list is
    configurable rather than assumed complete.
    """

    def __init__(self, markers: Iterable[str] = DEFAULT_TRANSIENT_MARKERS):
        self.markers = tuple(markers)

    def __call__(self, error: Exception) -> bool:
        if isinstance(error, EmptyModelResponse):
            return False
        if isinstance(error, genai_errors.ServerError):
            return True
        if isinstance(error, genai_errors.APIError) and getattr(error, "code", None) in TRANSIENT_STATUS_CODES:
            return True
        message = str(error)
        lowered = message.lower()
        return any(marker in message or marker.lower() in lowered for marker in self.markers)


class SlideEditModelClient(ITextModel):
    """Sends the editing prompt to Gemini and returns the raw text answer"""

    def __init__(
        self,
        client: Any = None,
        model_config: Optional[ModelConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        config: Optional[EditingConfig] = None,
    ):
        config = config or get_config()
        self._client = client
        self.model_config = model_config or config.model
        self.retry_policy = retry_policy or RetryPolicy(
            # First call plus text_max_retries retries
            max_attempts=config.retry.text_max_retries + 1,
            base_delay=config.retry.text_base_delay,
            is_transient=TransientErrorClassifier(config.retry.transient_markers),
        )
        logging_config = get_logging_config()
        self.log_prompts = logging_config["log_prompts"]
        self.log_model_output = logging_config["log_model_output"]

    @property
    def client(self):
        if self._client is None:
            from agents.ai.clients import get_gemini_client
            self._client = get_gemini_client()
        return self._client

    def _generation_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=self.model_config.temperature,
            max_output_tokens=self.model_config.max_output_tokens,
            top_p=self.model_config.top_p,
            top_k=self.model_config.top_k,
        )

    async def _generate_once(self, prompt: str) -> str:
        def _invoke():
            return self.client.models.generate_content(
                model=self.model_config.model,
                contents=prompt,
                config=self._generation_config(),
            )

        response = await asyncio.to_thread(_invoke)
        text = getattr(response, "text", None) if response is not None else None
        if not text or not text.strip():
            raise EmptyModelResponse("Empty response from text model")
        return text

    async def call(self, prompt: str) -> str:
        """Return the model's raw text; raise ProviderError once retries are exhausted."""
        logger.info(f"[SLIDE_EDIT] Calling {self.model_config.model} with {len(prompt)} char prompt")
        if self.log_prompts:
            logger.info(f"[SLIDE_EDIT] Prompt:\n{prompt}")

        with ls.trace(
            name="slide-edit-llm",
            tags=["slide-edit"],
            inputs={"prompt_length": len(prompt)},
            metadata={
                "model": self.model_config.model,
                "temperature": self.model_config.temperature,
                "max_output_tokens": self.model_config.max_output_tokens,
            },
        ) as rt:
            try:
                text = await self.retry_policy.run(lambda: self._generate_once(prompt), "slide edit model call")
            except RetryExhausted as e:
                rt.end(outputs={"error": str(e.last_error), "attempts": e.attempts})
                raise ProviderError(
                    f"Text model call failed: {e.last_error}",
                    transient=e.transient,
                    attempts=e.attempts,
                    cause=e.last_error,
                ) from e.last_error
            rt.end(outputs={"response_length": len(text)})

        if self.log_model_output:
            logger.info(f"[SLIDE_EDIT] Model output:\n{text}")
        else:
            logger.info(f"[SLIDE_EDIT] Model returned {len(text)} chars: {preview(text, 120)!r}")
        return text
