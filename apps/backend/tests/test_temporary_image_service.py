"""Unit tests for temporary image storage and migration."""

import pytest
from conftest import TINY_PNG_B64, FakeTemporaryStore

from models.editing import TemporaryImageInfo
from services.temporary_image_service import TemporaryImageService, migrate_temporary_images_to_permanent
from utils.supabase import perform_supabase_operation_with_retry, reset_supabase_client


class FakeBucket:
    def __init__(self, name, storage):
        self.name = name
        self.storage = storage

    @property
    def files(self):
        return self.storage.files.setdefault(self.name, {})

    def upload(self, path, file, file_options=None):
        if self.name in self.storage.failing_uploads:
            raise RuntimeError("upload rejected")
        self.files[path] = (file, file_options)
        return {"Key": f"{self.name}/{path}"}

    def get_public_url(self, path):
        return f"https://storage.test/{self.name}/{path}"

    def download(self, path):
        if path not in self.files:
            raise RuntimeError("Object not found")
        return self.files[path][0]

    def remove(self, paths):
        for path in paths:
            self.files.pop(path, None)
        return paths

    def list(self, path, options=None):
        prefix = path + "/"
        return [{"name": key[len(prefix):]} for key in self.files if key.startswith(prefix)]


class FakeStorage:
    def __init__(self):
        self.files = {}
        self.failing_uploads = set()

    def from_(self, bucket):
        return FakeBucket(bucket, self)


class FakeSupabase:
    def __init__(self):
        self.storage = FakeStorage()


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def service(supabase):
    return TemporaryImageService(
        client=supabase,
        user_id="u1",
        clock=lambda: 1700000000.0,
        max_attempts=1,
        backoff_seconds=0,
    )


class TestUploadTemporaryImage:
    """Test TemporaryImageService.upload_temporary_image."""

    async def test_uploads_webp_under_session_path(self, service, supabase):
        info = await service.upload_temporary_image(TINY_PNG_B64, "cow", 512, 512, 0, "sess-1")

        expected_path = "temp/u1/sess-1/img_0_1700000000000.webp"
        assert info.filePath == expected_path
        assert info.fileName == "img_0_1700000000000.webp"
        assert info.tempUrl == f"https://storage.test/temp-images/{expected_path}"
        assert (info.prompt, info.width, info.height, info.sessionId) == ("cow", 512, 512, "sess-1")

        data, options = supabase.storage.files["temp-images"][expected_path]
        assert data[:4] == b"RIFF"
        assert options == {"content-type": "image/webp", "upsert": "true"}

    async def test_accepts_data_urls(self, service):
        info = await service.upload_temporary_image(f"data:image/png;base64,{TINY_PNG_B64}", "cow", 512, 512, 1, "s")
        assert info is not None

    async def test_failed_upload_returns_none(self, service, supabase):
        supabase.storage.failing_uploads.add("temp-images")
        assert await service.upload_temporary_image(TINY_PNG_B64, "cow", 512, 512, 0, "s") is None

    async def test_unconfigured_storage_returns_none(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)
        reset_supabase_client()

        service = TemporaryImageService(user_id="u1")
        assert await service.upload_temporary_image(TINY_PNG_B64, "cow", 512, 512, 0, "s") is None


class TestMigrateToPermanent:
    """Test migration and cleanup."""

    async def test_migrates_and_removes_temp_file(self, service, supabase):
        info = await service.upload_temporary_image(TINY_PNG_B64, "cow", 512, 512, 0, "sess-1")

        results = await service.migrate_to_permanent([info], "lesson-9")

        assert results[0].success is True
        assert results[0].tempUrl == info.tempUrl
        assert results[0].permanentUrl == "https://storage.test/lesson-assets/lessons/lesson-9/slide-1-1700000000000.webp"
        assert supabase.storage.files["temp-images"] == {}
        assert "lessons/lesson-9/slide-1-1700000000000.webp" in supabase.storage.files["lesson-assets"]

    async def test_each_image_is_independent(self, service):
        good = await service.upload_temporary_image(TINY_PNG_B64, "cow", 512, 512, 0, "sess-1")
        missing = good.model_copy(update={"filePath": "temp/u1/sess-1/gone.webp", "tempUrl": "https://storage.test/gone"})

        results = await service.migrate_to_permanent([missing, good], "lesson-9")

        assert [r.success for r in results] == [False, True]
        assert results[0].error.startswith("Download failed")
        assert results[0].permanentUrl == ""

    async def test_cleanup_session(self, service, supabase):
        await service.upload_temporary_image(TINY_PNG_B64, "cow", 512, 512, 0, "sess-1")
        await service.upload_temporary_image(TINY_PNG_B64, "pig", 512, 512, 1, "sess-2")

        assert await service.cleanup_session("sess-1") is True
        remaining = list(supabase.storage.files["temp-images"])
        assert remaining == ["temp/u1/sess-2/img_1_1700000000000.webp"]
        assert await service.cleanup_session("empty-session") is True


class TestMigrateHtml:
    """Test migrate_temporary_images_to_permanent."""

    def _info(self, url):
        return TemporaryImageInfo(
            tempUrl=url, fileName="a.webp", filePath="temp/u1/s/a.webp", prompt="cow", width=512, height=512, sessionId="s"
        )

    async def test_rewrites_img_tags_and_backgrounds(self):
        temp_url = "https://storage.test/temp-images/temp/u1/s/a.webp"
        html = (
            f'<img src="{temp_url}" data-storage-type="temporary" data-temp-url="{temp_url}" data-session-id="s">'
            f'<div style="background-image: url({temp_url})"></div>'
        )

        updated, results = await migrate_temporary_images_to_permanent(
            html, [self._info(temp_url)], "lesson-1", FakeTemporaryStore()
        )

        permanent_url = results[0].permanentUrl
        assert temp_url not in updated
        assert f'src="{permanent_url}"' in updated
        assert 'data-storage-type="permanent"' in updated
        assert f'data-permanent-url="{permanent_url}"' in updated
        assert f"url({permanent_url})" in updated

    async def test_rewrites_escaped_url_with_query_string(self):
        temp_url = "https://storage.test/temp-images/a.webp?token=abc&expires=60"
        escaped = "https://storage.test/temp-images/a.webp?token=abc&amp;expires=60"
        html = (
            f'<img src="{escaped}" data-storage-type="temporary" data-temp-url="{escaped}">'
            f'<div style="background-image: url({escaped})"></div>'
        )

        updated, results = await migrate_temporary_images_to_permanent(
            html, [self._info(temp_url)], "lesson-1", FakeTemporaryStore()
        )

        permanent_url = results[0].permanentUrl
        assert "temp-images" not in updated
        assert f'src="{permanent_url}"' in updated
        assert f'data-permanent-url="{permanent_url}"' in updated
        assert f"url({permanent_url})" in updated

    async def test_failed_migration_keeps_temp_url(self):
        temp_url = "https://storage.test/temp-images/temp/u1/s/a.webp"
        html = f'<img src="{temp_url}" data-storage-type="temporary">'
        store = FakeTemporaryStore(fail_migrations_for={temp_url})

        updated, results = await migrate_temporary_images_to_permanent(html, [self._info(temp_url)], "lesson-1", store)

        assert updated == html
        assert results[0].success is False

    async def test_no_images(self):
        assert await migrate_temporary_images_to_permanent("<p>x</p>", [], "lesson-1", FakeTemporaryStore()) == ("<p>x</p>", [])


class TestStorageRetry:
    """Test perform_supabase_operation_with_retry."""

    def test_retries_until_success(self):
        calls = []

        def operation():
            calls.append(1)
            if len(calls) < 3:
                raise RuntimeError("ReadError")
            return "stored"

        assert perform_supabase_operation_with_retry(operation, "upload", max_attempts=3, backoff_seconds=0) == "stored"
        assert len(calls) == 3

    def test_raises_last_error(self):
        def operation():
            raise RuntimeError("bucket not found")

        with pytest.raises(RuntimeError, match="bucket not found"):
            perform_supabase_operation_with_retry(operation, "upload", max_attempts=2, backoff_seconds=0)
