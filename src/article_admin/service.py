"""
Request-level business logic for the article admin API.

``AdminService`` coordinates the hosted backend and the local upload store for
each endpoint. Article mutations touch two resources that share no transaction
(the remote row and a local cover file), so every mutation follows the same
order:

1. Run the remote mutation.
2. If it fails, remove any file uploaded for this request and raise.
3. If it succeeds, remove the cover file it made obsolete. A failure here does
   not fail the request; it is logged and returned as a cleanup warning so the
   caller can see the row and the filesystem disagree.

Update and delete of one article are serialized with a per-article lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .backend import AuthenticationFailed, AuthUser, BackendError, BackendService
from .configuration import Settings
from .errors import (
    AdminCheckError,
    ArticleCreateError,
    ArticleDeleteError,
    ArticleNotFound,
    ArticleUpdateError,
    InvalidArticle,
    InvalidCredentials,
    InvalidToken,
    LoginError,
    MissingCoverImage,
    MissingCredentials,
    NotAnAdmin,
    ProfileFetchError,
    TokenVerificationError,
)
from .models import AdminProfile, AdminUser, ArticleForm, LoginResponse
from .uploads import StoredUpload, UploadStore
from .utils import KeyedLock, utc_now_iso

logger = logging.getLogger(__name__)


@dataclass
class MutationResult:
    """Outcome of an article mutation plus any post-commit cleanup problems."""

    article: Optional[Dict[str, Any]] = None
    warnings: List[str] = field(default_factory=list)


class AdminService:
    def __init__(
        self,
        backend: BackendService,
        uploads: UploadStore,
        admins_table: str = "admins",
        articles_table: str = "articles",
    ) -> None:
        self.backend = backend
        self.uploads = uploads
        self.admins_table = admins_table
        self.articles_table = articles_table
        self._article_locks = KeyedLock()

    @classmethod
    def from_settings(cls, settings: Settings, backend: BackendService) -> "AdminService":
        return cls(
            backend=backend,
            uploads=UploadStore.from_settings(settings.uploads),
            admins_table=settings.supabase.admins_table,
            articles_table=settings.supabase.articles_table,
        )

    # Auth

    def login(self, email: Optional[str], password: Optional[str]) -> LoginResponse:
        """Authenticate against the hosted auth service, then require an admins row."""
        if not email or not password:
            raise MissingCredentials()

        try:
            result = self.backend.sign_in_with_password(email, password)
        except AuthenticationFailed as exc:
            raise InvalidCredentials() from exc
        except BackendError as exc:
            logger.error(f"Login error: {exc}")
            raise LoginError() from exc

        if result.user is None:
            raise InvalidCredentials("Authentication failed")

        try:
            admin = self.backend.select_by_id(self.admins_table, result.user.id)
        except BackendError as exc:
            logger.error(f"Admin check error: {exc}")
            raise NotAnAdmin() from exc
        if admin is None:
            raise NotAnAdmin("Unauthorized access - not an admin")

        logger.info(f"Admin {result.user.id} logged in")
        return LoginResponse(
            message="Login successful",
            user=AdminUser(id=str(admin["id"]), email=admin.get("email"), role=admin.get("role")),
            session=result.session,
        )

    def authenticate(self, access_token: str) -> AuthUser:
        try:
            user = self.backend.get_user(access_token)
        except AuthenticationFailed as exc:
            raise InvalidToken() from exc
        except BackendError as exc:
            logger.error(f"Token verification error: {exc}")
            raise TokenVerificationError() from exc
        if user is None:
            raise InvalidToken()
        return user

    def require_admin(self, user: AuthUser) -> AuthUser:
        try:
            admin = self.backend.select_by_id(self.admins_table, user.id, "id")
        except BackendError as exc:
            logger.error(f"Admin check error: {exc}")
            raise AdminCheckError() from exc
        if admin is None:
            logger.warning(f"User {user.id} is authenticated but not an admin")
            raise NotAnAdmin()
        return user

    def get_profile(self, user: AuthUser) -> AdminProfile:
        try:
            row = self.backend.select_by_id(self.admins_table, user.id, "id, email, role, created_at")
        except BackendError as exc:
            logger.error(f"Error fetching admin profile: {exc}")
            raise ProfileFetchError() from exc
        if row is None:
            logger.error(f"Error fetching admin profile: no admins row for {user.id}")
            raise ProfileFetchError()
        return AdminProfile(
            id=str(row["id"]),
            email=row.get("email"),
            role=row.get("role"),
            created_at=row.get("created_at"),
        )

    # Articles

    def _discard_upload(self, upload: Optional[StoredUpload]) -> None:
        if upload is None:
            return
        try:
            self.uploads.remove(upload.url)
        except OSError as exc:
            logger.error(f"Could not remove orphaned upload {upload.filename}: {exc}")

    def _cleanup(self, cover_image: Optional[str], article_id: str) -> List[str]:
        try:
            self.uploads.remove(cover_image)
        except OSError as exc:
            logger.warning(f"Article {article_id} committed but cover image {cover_image} was not removed: {exc}")
            return [f"Cover image {cover_image} could not be removed"]
        return []

    def _external_cover(self, cover_image_url: str) -> str:
        # Local files are only ever referenced through an upload made for this article.
        if self.uploads.is_local(cover_image_url):
            raise InvalidArticle(f"cover_image_url must not point into {self.uploads.url_prefix}")
        return cover_image_url

    def _fetch_cover(self, article_id: str, on_error: type[Exception]) -> Optional[str]:
        try:
            row = self.backend.select_by_id(self.articles_table, article_id, "cover_image")
        except BackendError as exc:
            logger.error(f"Error fetching article {article_id}: {exc}")
            raise on_error() from exc
        if row is None:
            raise ArticleNotFound()
        return row.get("cover_image")

    def create_article(self, form: ArticleForm, upload: Optional[StoredUpload] = None) -> Dict[str, Any]:
        if upload is not None:
            cover_image = upload.url
        elif form.cover_image_url:
            cover_image = self._external_cover(form.cover_image_url)
        else:
            raise MissingCoverImage()

        row = {**form.to_row(), "cover_image": cover_image, "publication_date": utc_now_iso()}
        try:
            article = self.backend.insert(self.articles_table, row)
        except BackendError as exc:
            logger.error(f"Error creating article: {exc}")
            self._discard_upload(upload)
            raise ArticleCreateError() from exc

        logger.info(f"Created article {article.get('id')}")
        return article

    def update_article(
        self, article_id: str, form: ArticleForm, upload: Optional[StoredUpload] = None
    ) -> MutationResult:
        with self._article_locks.hold(article_id):
            try:
                previous = self._fetch_cover(article_id, ArticleUpdateError)
            except Exception:
                self._discard_upload(upload)
                raise

            if upload is not None:
                cover_image = upload.url
            elif form.cover_image_url == previous:
                cover_image = previous
            elif form.cover_image_url:
                cover_image = self._external_cover(form.cover_image_url)
            else:
                cover_image = previous

            values = {**form.to_row(), "cover_image": cover_image, "updated_at": utc_now_iso()}
            try:
                article = self.backend.update_by_id(self.articles_table, article_id, values)
            except BackendError as exc:
                logger.error(f"Error updating article {article_id}: {exc}")
                self._discard_upload(upload)
                raise ArticleUpdateError() from exc
            if article is None:
                self._discard_upload(upload)
                raise ArticleNotFound()

            warnings: List[str] = []
            if previous != cover_image:
                warnings = self._cleanup(previous, article_id)

        logger.info(f"Updated article {article_id}")
        return MutationResult(article=article, warnings=warnings)

    def delete_article(self, article_id: str) -> MutationResult:
        with self._article_locks.hold(article_id):
            cover_image = self._fetch_cover(article_id, ArticleDeleteError)
            try:
                self.backend.delete_by_id(self.articles_table, article_id)
            except BackendError as exc:
                logger.error(f"Error deleting article {article_id}: {exc}")
                raise ArticleDeleteError() from exc
            warnings = self._cleanup(cover_image, article_id)

        logger.info(f"Deleted article {article_id}")
        return MutationResult(warnings=warnings)
