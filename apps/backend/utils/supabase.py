import os
import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

from dotenv import load_dotenv
from supabase import create_client, Client

load_dotenv()

logger = logging.getLogger(__name__)

# Connection-level failures after which the pooled client is rebuilt
TRANSPORT_ERROR_MARKERS = (
    "StreamReset",
    "UNEXPECTED_EOF_WHILE_READING",
    "EOF occurred in violation of protocol",
    "RemoteProtocolError",
    "ConnectionResetError",
    "ReadError",
)

_storage_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Shared Supabase client for image storage.

    The service key is preferred so temp-bucket writes are not subject to
    row level security; SUPABASE_KEY is the fallback.

    Raises:
        ValueError: SUPABASE_URL or both keys missing
    """
    global _storage_client

    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY (or SUPABASE_KEY) must be set for image storage")

    if _storage_client is None:
        _storage_client = create_client(url, key)
        logger.info("Supabase storage client created")
    return _storage_client


def reset_supabase_client() -> None:
    """Forget the cached client; the next get_supabase_client() opens a new connection pool."""
    global _storage_client
    _storage_client = None


def _is_transport_error(error: BaseException) -> bool:
    message = str(error)
    return any(marker in message for marker in TRANSPORT_ERROR_MARKERS)


def _call_with_timeout(operation: Callable[[], Any], timeout_seconds: float) -> Any:
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(operation).result(timeout=timeout_seconds)


def perform_supabase_operation_with_retry(
    operation: Callable[[], Any],
    description: str = "operation",
    max_attempts: int = 3,
    timeout_seconds: float = 8.0,
    backoff_seconds: float = 0.2,
) -> Any:
    """
    Run a blocking storage call with a per-attempt timeout.

    Timeouts and transport errors also drop the cached client before the next
    attempt. The pause before attempt n+1 is backoff_seconds * 2**(n-1).
    The last error is re-raised once max_attempts is used up.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return _call_with_timeout(operation, timeout_seconds)
        except FutureTimeoutError as e:
            last_error = e
            logger.warning(f"[STORAGE] {description} timed out after {timeout_seconds}s ({attempt}/{max_attempts})")
            reset_supabase_client()
        except Exception as e:
            last_error = e
            logger.warning(f"[STORAGE] {description} failed ({attempt}/{max_attempts}): {e}")
            if _is_transport_error(e):
                reset_supabase_client()
        if attempt < max_attempts and backoff_seconds > 0:
            time.sleep(backoff_seconds * (2 ** (attempt - 1)))
    raise last_error


async def run_supabase_operation(operation: Callable[[], Any], description: str = "operation", **kwargs) -> Any:
    """perform_supabase_operation_with_retry on a worker thread, so the event loop keeps running."""
    return await asyncio.to_thread(perform_supabase_operation_with_retry, operation, description, **kwargs)
