import asyncio
from typing import Any, Dict, Optional

import aiohttp

from agents.config import IMAGE_API_URL
from agents.core.interfaces import IImageGenerator, ImageGenerationResponse
from setup_logging_optimized import get_logger

logger = get_logger(__name__)


class HttpImageGenerationService(IImageGenerator):
    """Image generation through an HTTP endpoint.

    POSTs {prompt, width, height} and expects
    {success, image (base64), model?, error?} back.
    """

    def __init__(self, api_url: str = IMAGE_API_URL, timeout_seconds: int = 120, headers: Optional[Dict[str, str]] = None):
        self.api_url = api_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds, connect=10)
        self.headers = {"Content-Type": "application/json", **(headers or {})}

    def _process_response(self, data: Dict[str, Any]) -> ImageGenerationResponse:
        if not data.get("success") or not data.get("image"):
            return ImageGenerationResponse.failed(data.get("error") or "No image in response", model=data.get("model"))
        image = data["image"]
        mime_type = "image/png"
        if image.startswith("data:"):
            # Accept data URLs as well as bare base64
            header, image = image.split(",", 1)
            mime_type = header[5:].split(";", 1)[0] or mime_type
        return ImageGenerationResponse(success=True, image=image, model=data.get("model"), mime_type=mime_type)

    async def generate_image(self, prompt: str, width: int, height: int) -> ImageGenerationResponse:
        payload = {"prompt": prompt, "width": width, "height": height}
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.api_url, headers=self.headers, json=payload) as response:
                    try:
                        data = await response.json(content_type=None)
                    except (aiohttp.ContentTypeError, ValueError):
                        data = {"error": await response.text()}
                    if response.status != 200:
                        error = data.get("error") if isinstance(data, dict) else None
                        return ImageGenerationResponse.failed(f"HTTP {response.status}: {error or 'Unknown error'}")
                    return self._process_response(data if isinstance(data, dict) else {})
        except asyncio.TimeoutError:
            logger.warning(f"[IMAGE_GEN] Timed out after {self.timeout.total}s: {self.api_url}")
            return ImageGenerationResponse.failed(f"Image generation timed out after {self.timeout.total} seconds")
        except aiohttp.ClientError as e:
            logger.warning(f"[IMAGE_GEN] Request failed: {e}")
            return ImageGenerationResponse.failed(str(e))
