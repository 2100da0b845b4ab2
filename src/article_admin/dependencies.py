"""
FastAPI dependencies that run before the admin route handlers.

Article routes resolve, in order: bearer-token authentication, the admins-row
check, form validation, and finally the cover image upload. Any of them can
reject the request, so a file is only written once the caller is an admin and
the form is valid.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, File, Form, Request, UploadFile
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from .backend import AuthUser
from .context import AppContext
from .errors import InvalidArticle, MissingToken
from .models import ArticleForm, describe_validation_error
from .service import AdminService
from .uploads import StoredUpload

bearer_scheme = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_service(context: AppContext = Depends(get_context)) -> AdminService:
    return context.service


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: AdminService = Depends(get_service),
) -> AuthUser:
    if credentials is None or not credentials.credentials:
        raise MissingToken()
    return service.authenticate(credentials.credentials)


def require_admin(
    user: AuthUser = Depends(get_current_user),
    service: AdminService = Depends(get_service),
) -> AuthUser:
    return service.require_admin(user)


def article_form(
    title: Optional[str] = Form(None),
    excerpt: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_featured: Optional[str] = Form(None),
    cover_image_url: Optional[str] = Form(None),
) -> ArticleForm:
    submitted = {
        "title": title,
        "excerpt": excerpt,
        "content": content,
        "author": author,
        "tags": tags,
        "is_featured": is_featured,
        "cover_image_url": cover_image_url,
    }
    try:
        return ArticleForm(**{key: value for key, value in submitted.items() if value is not None})
    except ValidationError as exc:
        raise InvalidArticle(describe_validation_error(exc)) from exc


async def cover_image_upload(
    cover_image: Optional[UploadFile] = File(None),
    service: AdminService = Depends(get_service),
) -> Optional[StoredUpload]:
    if cover_image is None or not cover_image.filename:
        return None
    return await service.uploads.save(cover_image)
