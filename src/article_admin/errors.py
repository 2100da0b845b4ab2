"""
Error taxonomy for the admin API.

Every error a handler can raise maps to one HTTP status and one fixed,
user-facing message. Upstream detail is logged where the error is raised and
never copied into the response body.
"""

from __future__ import annotations

from typing import Optional


class AdminAPIError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


# Input validation (400)


class MissingCredentials(AdminAPIError):
    status_code = 400
    message = "Email and password are required"


class InvalidArticle(AdminAPIError):
    status_code = 400
    message = "Invalid article data"


class InvalidUpload(AdminAPIError):
    status_code = 400
    message = "Only PDF, DOC, DOCX, JPG, JPEG, and PNG files are allowed!"


class UploadTooLarge(AdminAPIError):
    status_code = 400
    message = "File too large"


class MissingCoverImage(AdminAPIError):
    status_code = 400
    message = "Cover image is required"


# Authentication (401) and authorization (403)


class InvalidCredentials(AdminAPIError):
    status_code = 401
    message = "Invalid credentials"


class MissingToken(AdminAPIError):
    status_code = 401
    message = "Access token required"


class InvalidToken(AdminAPIError):
    status_code = 401
    message = "Invalid or expired token"


class NotAnAdmin(AdminAPIError):
    status_code = 403
    message = "User is not an admin"


class ArticleNotFound(AdminAPIError):
    status_code = 404
    message = "Article not found"


# Upstream failures (500)


class LoginError(AdminAPIError):
    message = "Internal server error during login"


class AdminCheckError(AdminAPIError):
    message = "Failed to verify admin access"


class ProfileFetchError(AdminAPIError):
    message = "Failed to fetch admin profile"


class ArticleCreateError(AdminAPIError):
    message = "Failed to create article"


class ArticleUpdateError(AdminAPIError):
    message = "Failed to update article"


class ArticleDeleteError(AdminAPIError):
    message = "Failed to delete article"


class TokenVerificationError(AdminAPIError):
    message = "Failed to verify access token"
