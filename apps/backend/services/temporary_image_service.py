import re
import html as html_lib
import time
import base64
import binascii
from io import BytesIO
from typing import Any, Callable, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from agents.config import LESSON_ASSETS_BUCKET, TEMP_IMAGES_BUCKET
from agents.core.interfaces import ITemporaryImageStore
from agents.editing.exceptions import TemporaryStorageError
from models.editing import ImageMigrationResult, TemporaryImageInfo
from setup_logging_optimized import get_logger
from utils.supabase import get_supabase_client, run_supabase_operation

logger = get_logger(__name__)

_DATA_URL_PREFIX_RE = re.compile(r'^data:image/[a-zA-Z0-9.+-]+;base64,')
_IMG_TAG_RE = re.compile(r'<img\b[^>]*>', re.IGNORECASE)


def _to_webp(image_base64: str) -> Tuple[bytes, str]:
    """Decode base64 and re-encode as WebP; keep the original bytes if Pillow can't read them."""
    raw = base64.b64decode(_DATA_URL_PREFIX_RE.sub("", image_base64))
    try:
        with Image.open(BytesIO(raw)) as image:
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA")
            buffer = BytesIO()
            image.save(buffer, format="WEBP", quality=90)
            return buffer.getvalue(), "image/webp"
    except (UnidentifiedImageError, OSError, ValueError):
        return raw, "application/octet-stream"


class TemporaryImageService(ITemporaryImageStore):
    """Keeps generated slide images in a temporary Supabase bucket until the lesson is saved.

    Layout:
        temp-images/temp/{user_id}/{session_id}/img_{index}_{ts}.webp
        lesson-assets/lessons/{lesson_id}/slide-{n}-{ts}.webp
    """

    def __init__(
        self,
        client: Any = None,
        user_id: str = "anonymous",
        temp_bucket: str = TEMP_IMAGES_BUCKET,
        permanent_bucket: str = LESSON_ASSETS_BUCKET,
        clock: Callable[[], float] = time.time,
        **retry_options,
    ):
        self._client = client
        self.user_id = user_id or "anonymous"
        self.temp_bucket = temp_bucket
        self.permanent_bucket = permanent_bucket
        self.clock = clock
        # Forwarded to perform_supabase_operation_with_retry (max_attempts, timeout_seconds, backoff_seconds)
        self.retry_options = retry_options

    @property
    def supabase(self):
        if self._client is None:
            try:
                self._client = get_supabase_client()
            except ValueError as e:
                raise TemporaryStorageError("Supabase storage is not configured", cause=e)
        return self._client

    def _timestamp_ms(self) -> int:
        return int(self.clock() * 1000)

    def session_path(self, session_id: str) -> str:
        return f"temp/{self.user_id}/{session_id}"

    async def _run(self, operation: Callable[[], Any], description: str) -> Any:
        return await run_supabase_operation(operation, description, **self.retry_options)

    async def upload_temporary_image(
        self,
        image_base64: str,
        prompt: str,
        width: int,
        height: int,
        index: int,
        session_id: str,
    ) -> Optional[TemporaryImageInfo]:
        try:
            data, content_type = _to_webp(image_base64)
            file_name = f"img_{index}_{self._timestamp_ms()}.webp"
            file_path = f"{self.session_path(session_id)}/{file_name}"
            bucket = self.supabase.storage.from_(self.temp_bucket)

            await self._run(
                lambda: bucket.upload(
                    path=file_path,
                    file=data,
                    file_options={"content-type": content_type, "upsert": "true"},
                ),
                f"temp upload {file_path}",
            )
            temp_url = await self._run(lambda: bucket.get_public_url(file_path), "temp public url")
        except (TemporaryStorageError, binascii.Error) as e:
            logger.warning(f"[TEMP_STORAGE] Upload skipped for image {index}: {e}")
            return None
        except Exception as e:
            logger.error(f"[TEMP_STORAGE] Upload failed for image {index}: {e}")
            return None

        logger.info(f"[TEMP_STORAGE] Uploaded temporary image: {file_path}")
        return TemporaryImageInfo(
            tempUrl=str(temp_url),
            fileName=file_name,
            filePath=file_path,
            prompt=prompt,
            width=width,
            height=height,
            sessionId=session_id,
        )

    async def _migrate_one(self, image: TemporaryImageInfo, position: int, lesson_id: str) -> ImageMigrationResult:
        temp_bucket = self.supabase.storage.from_(self.temp_bucket)
        permanent_bucket = self.supabase.storage.from_(self.permanent_bucket)

        try:
            data = await self._run(lambda: temp_bucket.download(image.filePath), f"download {image.filePath}")
        except Exception as e:
            return ImageMigrationResult(tempUrl=image.tempUrl, success=False, error=f"Download failed: {e}")

        permanent_path = f"lessons/{lesson_id}/slide-{position + 1}-{self._timestamp_ms()}.webp"
        try:
            await self._run(
                lambda: permanent_bucket.upload(
                    path=permanent_path,
                    file=data,
                    file_options={"content-type": "image/webp", "upsert": "true"},
                ),
                f"permanent upload {permanent_path}",
            )
            permanent_url = await self._run(lambda: permanent_bucket.get_public_url(permanent_path), "permanent public url")
        except Exception as e:
            return ImageMigrationResult(tempUrl=image.tempUrl, success=False, error=f"Upload failed: {e}")

        try:
            await self._run(lambda: temp_bucket.remove([image.filePath]), f"remove {image.filePath}")
        except Exception as e:
            # The permanent copy exists; a leftover temp file is only clutter
            logger.warning(f"[TEMP_STORAGE] Could not remove {image.filePath}: {e}")

        logger.info(f"[TEMP_STORAGE] Migrated {image.tempUrl} -> {permanent_url}")
        return ImageMigrationResult(tempUrl=image.tempUrl, permanentUrl=str(permanent_url), success=True)

    async def migrate_to_permanent(self, images: List[TemporaryImageInfo], lesson_id: str) -> List[ImageMigrationResult]:
        """Copy each image to the lesson bucket; one failure doesn't stop the rest."""
        results = []
        for position, image in enumerate(images):
            results.append(await self._migrate_one(image, position, lesson_id))
        successful = sum(1 for r in results if r.success)
        logger.info(f"[TEMP_STORAGE] Migration complete: {successful}/{len(images)} images for lesson {lesson_id}")
        return results

    async def cleanup_session(self, session_id: str) -> bool:
        session_path = self.session_path(session_id)
        try:
            bucket = self.supabase.storage.from_(self.temp_bucket)
            files = await self._run(lambda: bucket.list(session_path, {"limit": 100}), f"list {session_path}")
            if not files:
                logger.info(f"[TEMP_STORAGE] No temp files to clean up for session {session_id}")
                return True
            paths = [f"{session_path}/{f['name']}" for f in files]
            await self._run(lambda: bucket.remove(paths), f"remove session {session_id}")
        except Exception as e:
            logger.error(f"[TEMP_STORAGE] Cleanup failed for session {session_id}: {e}")
            return False
        logger.info(f"[TEMP_STORAGE] Cleaned up {len(paths)} temp files for session {session_id}")
        return True


def _url_forms(temp_url: str, permanent_url: str) -> List[Tuple[str, str]]:
    """Raw and HTML-escaped spellings of the URL pair; attribute values carry the escaped one."""
    escaped = (html_lib.escape(temp_url, quote=True), html_lib.escape(permanent_url, quote=True))
    return [escaped, (temp_url, permanent_url)] if escaped[0] != temp_url else [(temp_url, permanent_url)]


def _replace_urls(text: str, forms: List[Tuple[str, str]]) -> str:
    for old, new in forms:
        text = text.replace(old, new)
    return text


def _rewrite_img_tag(tag: str, forms: List[Tuple[str, str]]) -> str:
    tag = _replace_urls(tag, forms)
    tag = tag.replace('data-storage-type="temporary"', 'data-storage-type="permanent"')
    permanent_attr = forms[0][1]
    return re.sub(r'data-temp-url="[^"]*"', lambda m: f'data-permanent-url="{permanent_attr}"', tag)


async def migrate_temporary_images_to_permanent(
    html: str,
    images: List[TemporaryImageInfo],
    lesson_id: str,
    service: ITemporaryImageStore,
) -> Tuple[str, List[ImageMigrationResult]]:
    """Migrate images and point the slide HTML at their permanent URLs."""
    if not images:
        return html, []

    results = await service.migrate_to_permanent(images, lesson_id)
    updated = html
    for result in results:
        if not (result.success and result.permanentUrl):
            logger.error(f"[TEMP_STORAGE] Failed to migrate {result.tempUrl}: {result.error}")
            continue
        forms = _url_forms(result.tempUrl, result.permanentUrl)
        updated = _IMG_TAG_RE.sub(
            lambda m: _rewrite_img_tag(m.group(0), forms)
            if any(old in m.group(0) for old, _ in forms) else m.group(0),
            updated,
        )
        # URLs outside <img> tags (inline CSS backgrounds)
        updated = _replace_urls(updated, forms)
    return updated, results
