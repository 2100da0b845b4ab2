from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError, field_validator

TRUE_VALUES = {"true"}
FALSE_VALUES = {"false", ""}


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AdminUser(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


class AdminProfile(AdminUser):
    created_at: Optional[str] = None


class LoginResponse(BaseModel):
    message: str
    user: AdminUser
    session: Optional[Dict[str, Any]] = None


class MessageResponse(BaseModel):
    message: str


class ArticleForm(BaseModel):
    """
    Article fields as submitted through a multipart or urlencoded form.

    Form encoding only carries strings, so ``tags`` arrives as a JSON array
    literal and ``is_featured`` as ``"true"``/``"false"``. Both are coerced here
    and anything that does not parse is a validation error.
    """

    title: str
    excerpt: str
    content: str
    author: str
    tags: List[str]
    is_featured: bool = False
    cover_image_url: Optional[str] = None

    @field_validator("title", "excerpt", "content", "author", mode="before")
    @classmethod
    def _require_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _parse_tags(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("must be a JSON array of strings") from exc
        if not isinstance(value, list):
            raise ValueError("must be a JSON array of strings")
        return value

    @field_validator("is_featured", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in TRUE_VALUES:
                return True
            if normalized in FALSE_VALUES:
                return False
        raise ValueError('must be "true" or "false"')

    @field_validator("cover_image_url", mode="before")
    @classmethod
    def _blank_url_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    def to_row(self) -> Dict[str, Any]:
        """Column values shared by insert and update; cover_image is resolved separately."""
        return {
            "title": self.title,
            "excerpt": self.excerpt,
            "content": self.content,
            "author": self.author,
            "tags": list(self.tags),
            "is_featured": self.is_featured,
        }


def describe_validation_error(exc: Union[ValidationError, RequestValidationError]) -> str:
    """Flatten a pydantic or FastAPI validation error into ``field: reason`` pairs."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "body"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)
