import os
import logging
from typing import Optional

from dotenv import load_dotenv
from google import genai

from agents.editing.exceptions import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

_gemini_client: Optional[genai.Client] = None


def get_gemini_api_key() -> Optional[str]:
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")


def get_gemini_client(api_key: Optional[str] = None) -> genai.Client:
    """
    Return the shared google-genai client.

    An explicit api_key always builds a fresh client; otherwise one client is
    created from GEMINI_API_KEY / GOOGLE_API_KEY and reused.
    """
    global _gemini_client
    if api_key:
        return genai.Client(api_key=api_key)
    if _gemini_client is None:
        key = get_gemini_api_key()
        if not key:
            raise ConfigurationError("GEMINI_API_KEY (or GOOGLE_API_KEY) is not set")
        _gemini_client = genai.Client(api_key=key)
        logger.info("Gemini client initialized")
    return _gemini_client


def reset_gemini_client() -> None:
    global _gemini_client
    _gemini_client = None
