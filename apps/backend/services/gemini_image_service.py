import os
import base64
import asyncio
from typing import Any, Optional

from dotenv import load_dotenv
from google import genai

from agents.config import GEMINI_IMAGE_MODEL
from agents.core.interfaces import IImageGenerator, ImageGenerationResponse
from setup_logging_optimized import get_logger

# Load environment variables
load_dotenv()

logger = get_logger(__name__)


class GeminiImageService(IImageGenerator):
    """Generates slide images with Gemini's image model.

    Gemini has no size parameter, so the requested width/height are passed as
    prompt guidance; the <img> tag that embeds the result carries the exact
    size.
    """

    def __init__(self, client: Any = None, model: str = GEMINI_IMAGE_MODEL):
        self.model = model
        self._client = client
        if client is None:
            api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
            if api_key:
                self._client = genai.Client(api_key=api_key)
            else:
                logger.warning("GOOGLE_API_KEY/GEMINI_API_KEY not set. Gemini image generation disabled.")
        self.is_available = self._client is not None

    @staticmethod
    def build_prompt(prompt: str, width: int, height: int) -> str:
        orientation = "square" if width == height else ("landscape" if width > height else "portrait")
        return (
            f"{prompt}. Child-friendly educational illustration, bright colors, no text or labels. "
            f"Compose for a {orientation} frame of about {width}x{height} pixels."
        )

    async def generate_image(self, prompt: str, width: int, height: int) -> ImageGenerationResponse:
        if not self.is_available:
            return ImageGenerationResponse.failed("Gemini API not configured", model=self.model)

        effective_prompt = self.build_prompt(prompt, width, height)

        # google-genai is sync; run it in a thread to keep the interface async
        def _invoke():
            return self._client.models.generate_content(
                model=self.model,
                contents=effective_prompt,
            )

        try:
            response = await asyncio.to_thread(_invoke)
        except Exception as e:
            logger.warning(f"[IMAGE_GEN] Gemini request failed: {e}")
            return ImageGenerationResponse.failed(str(e), model=self.model)

        if not response or not getattr(response, "candidates", None):
            return ImageGenerationResponse.failed("Empty response from Gemini", model=self.model)

        try:
            parts = response.candidates[0].content.parts or []
        except (AttributeError, IndexError):
            parts = []

        for part in parts:
            inline = getattr(part, "inline_data", None)
            if inline is None or not getattr(inline, "data", None):
                continue
            data = inline.data
            if isinstance(data, (bytes, bytearray)):
                b64_data: Optional[str] = base64.b64encode(data).decode("utf-8")
            else:
                # Some SDK versions already hand back base64 text
                b64_data = str(data)
            return ImageGenerationResponse(
                success=True,
                image=b64_data,
                model=self.model,
                mime_type=getattr(inline, "mime_type", None) or "image/png",
            )

        return ImageGenerationResponse.failed("No image data returned by Gemini", model=self.model)
