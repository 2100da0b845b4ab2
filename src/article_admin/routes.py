from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Response

from .backend import AuthUser
from .dependencies import article_form, cover_image_upload, get_current_user, get_service, require_admin
from .models import AdminProfile, ArticleForm, LoginRequest, LoginResponse, MessageResponse
from .service import AdminService
from .uploads import StoredUpload

CLEANUP_WARNING_HEADER = "X-Cleanup-Warning"

router = APIRouter(tags=["admin"])


def _attach_warnings(response: Response, warnings: List[str]) -> None:
    if warnings:
        response.headers[CLEANUP_WARNING_HEADER] = "; ".join(warnings)


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, service: AdminService = Depends(get_service)) -> LoginResponse:
    return service.login(payload.email, payload.password)


@router.get("/profile", response_model=AdminProfile)
def get_profile(
    user: AuthUser = Depends(get_current_user),
    service: AdminService = Depends(get_service),
) -> AdminProfile:
    return service.get_profile(user)


@router.post("/articles", status_code=201, dependencies=[Depends(require_admin)])
def create_article(
    form: ArticleForm = Depends(article_form),
    upload: Optional[StoredUpload] = Depends(cover_image_upload),
    service: AdminService = Depends(get_service),
) -> Dict[str, Any]:
    return service.create_article(form, upload)


@router.put("/articles/{article_id}", dependencies=[Depends(require_admin)])
def update_article(
    article_id: str,
    response: Response,
    form: ArticleForm = Depends(article_form),
    upload: Optional[StoredUpload] = Depends(cover_image_upload),
    service: AdminService = Depends(get_service),
) -> Dict[str, Any]:
    result = service.update_article(article_id, form, upload)
    _attach_warnings(response, result.warnings)
    return result.article


@router.delete("/articles/{article_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
def delete_article(
    article_id: str,
    response: Response,
    service: AdminService = Depends(get_service),
) -> MessageResponse:
    result = service.delete_article(article_id)
    _attach_warnings(response, result.warnings)
    return MessageResponse(message="Article deleted successfully")
