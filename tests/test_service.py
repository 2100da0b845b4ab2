"""
Tests for AdminService orchestration and the per-article lock.
"""

import threading
import time

import pytest

from article_admin.backend import AuthUser
from article_admin.errors import (
    AdminCheckError,
    ArticleNotFound,
    InvalidArticle,
    InvalidToken,
    MissingCoverImage,
    NotAnAdmin,
    TokenVerificationError,
)
from article_admin.models import ArticleForm
from article_admin.service import AdminService
from article_admin.uploads import StoredUpload, UploadStore
from article_admin.utils import KeyedLock


@pytest.fixture
def service(backend, tmp_path):
    return AdminService(backend=backend, uploads=UploadStore(tmp_path / "uploads"))


@pytest.fixture
def form():
    return ArticleForm(title="T", excerpt="E", content="C", author="A", tags='["a"]', is_featured="true")


def _stored(service, name, data=b"img"):
    path = service.uploads.directory / name
    path.write_bytes(data)
    return StoredUpload(filename=name, path=path, url=service.uploads.url_for(name))


class TestAuthentication:
    def test_unknown_token(self, service):
        with pytest.raises(InvalidToken):
            service.authenticate("nope")

    def test_backend_outage_is_server_error(self, service, backend):
        backend.fail.add("get_user")
        with pytest.raises(TokenVerificationError):
            service.authenticate("anything")

    def test_require_admin(self, service, backend):
        token = backend.add_user("a@example.com", "pw")
        user = service.authenticate(token)
        assert service.require_admin(user) is user

    def test_require_admin_without_row(self, service):
        with pytest.raises(NotAnAdmin):
            service.require_admin(AuthUser(id="stranger"))

    def test_require_admin_backend_failure(self, service, backend):
        backend.fail.add("select:admins")
        with pytest.raises(AdminCheckError):
            service.require_admin(AuthUser(id="x"))


class TestArticleSagas:
    def test_create_requires_cover(self, service, form):
        with pytest.raises(MissingCoverImage):
            service.create_article(form)

    def test_create_prefers_upload(self, service, form):
        upload = _stored(service, "cover_image-1-1.png")
        form = form.model_copy(update={"cover_image_url": "https://cdn.example.com/x.png"})
        article = service.create_article(form, upload)
        assert article["cover_image"] == "/uploads/cover_image-1-1.png"

    def test_create_rejects_url_into_upload_directory(self, service, backend, form):
        form = form.model_copy(update={"cover_image_url": "/uploads/cover_image-1-1.png"})
        with pytest.raises(InvalidArticle):
            service.create_article(form)
        assert backend.tables["articles"] == {}

    def test_update_rejects_url_into_upload_directory(self, service, backend, form):
        article = service.create_article(form.model_copy(update={"cover_image_url": "https://x/a.png"}))
        other = _stored(service, "cover_image-9-9.png")
        form = form.model_copy(update={"cover_image_url": other.url})
        with pytest.raises(InvalidArticle):
            service.update_article(article["id"], form)
        assert backend.tables["articles"][article["id"]]["cover_image"] == "https://x/a.png"
        assert other.path.exists()

    def test_update_may_resend_own_local_cover(self, service, form):
        upload = _stored(service, "cover_image-1-1.png")
        article = service.create_article(form, upload)
        form = form.model_copy(update={"cover_image_url": upload.url})
        result = service.update_article(article["id"], form)
        assert result.article["cover_image"] == upload.url
        assert upload.path.exists()

    def test_update_missing_article_discards_upload(self, service, form):
        upload = _stored(service, "cover_image-1-1.png")
        with pytest.raises(ArticleNotFound):
            service.update_article("404", form, upload)
        assert not upload.path.exists()

    def test_update_reports_cleanup_failure(self, service, form, monkeypatch):
        old = _stored(service, "cover_image-1-1.png")
        article = service.create_article(form, old)
        new = _stored(service, "cover_image-2-2.png")

        def remove(cover_image):
            raise OSError("device busy")

        monkeypatch.setattr(service.uploads, "remove", remove)
        result = service.update_article(article["id"], form, new)
        assert result.article["cover_image"] == new.url
        assert result.warnings == [f"Cover image {old.url} could not be removed"]

    def test_update_row_vanishing_discards_upload(self, service, backend, form):
        article = service.create_article(form.model_copy(update={"cover_image_url": "https://x/a.png"}))
        upload = _stored(service, "cover_image-3-3.png")
        original_update = backend.update_by_id

        def vanish(table, row_id, values):
            backend.tables[table].pop(row_id)
            return original_update(table, row_id, values)

        backend.update_by_id = vanish
        with pytest.raises(ArticleNotFound):
            service.update_article(article["id"], form, upload)
        assert not upload.path.exists()

    def test_delete_runs_row_before_file(self, service, backend, form, monkeypatch):
        upload = _stored(service, "cover_image-1-1.png")
        article = service.create_article(form, upload)
        order = []
        original_delete = backend.delete_by_id
        original_remove = service.uploads.remove

        def delete(table, row_id):
            order.append("row")
            original_delete(table, row_id)

        def remove(cover_image):
            order.append("file")
            return original_remove(cover_image)

        backend.delete_by_id = delete
        monkeypatch.setattr(service.uploads, "remove", remove)
        result = service.delete_article(article["id"])
        assert order == ["row", "file"]
        assert result.warnings == []

    def test_locks_are_released(self, service, form):
        article = service.create_article(form.model_copy(update={"cover_image_url": "https://x/a.png"}))
        service.update_article(article["id"], form)
        service.delete_article(article["id"])
        assert len(service._article_locks) == 0


class TestKeyedLock:
    def test_same_key_is_exclusive(self):
        locks = KeyedLock()
        entered = threading.Event()
        events = []

        def worker():
            entered.set()
            with locks.hold("42"):
                events.append("second")

        with locks.hold("42"):
            thread = threading.Thread(target=worker)
            thread.start()
            entered.wait(timeout=1)
            time.sleep(0.05)
            events.append("first")
        thread.join(timeout=1)

        assert events == ["first", "second"]
        assert len(locks) == 0

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        with locks.hold("a"):
            acquired = threading.Event()

            def worker():
                with locks.hold("b"):
                    acquired.set()

            thread = threading.Thread(target=worker)
            thread.start()
            assert acquired.wait(timeout=1)
            thread.join(timeout=1)

    def test_released_on_error(self):
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            with locks.hold("a"):
                raise RuntimeError("boom")
        assert len(locks) == 0
