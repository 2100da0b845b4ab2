"""
Pytest configuration and fixtures for Article Admin tests.
"""

import itertools
import os
import tempfile
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="article_admin_test_uploads_")
os.environ.setdefault("SUPABASE_URL", "")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "")

from article_admin.backend import AuthenticationFailed, AuthUser, BackendError, SignInResult
from article_admin.configuration import load_settings
from article_admin.context import build_context
from article_admin.main import create_app

PREFIX = "/api/admin"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse"


class FakeBackend:
    """In-memory stand-in for the hosted auth + table service."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {"admins": {}, "articles": {}}
        self.users: Dict[str, tuple] = {}
        self.tokens: Dict[str, AuthUser] = {}
        self.calls: list = []
        self.fail: set = set()
        self.sign_in_without_user = False
        self._ids = itertools.count(1)

    def add_user(self, email: str, password: str, admin: bool = True, role: str = "admin") -> str:
        user = AuthUser(id=f"user-{next(self._ids)}", email=email)
        token = f"token-{user.id}"
        self.users[email] = (password, user)
        self.tokens[token] = user
        if admin:
            self.tables["admins"][user.id] = {
                "id": user.id,
                "email": email,
                "role": role,
                "created_at": "2024-01-01T00:00:00+00:00",
            }
        return token

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail:
            raise BackendError(f"{operation} failed")

    def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        self._check("sign_in")
        if email not in self.users or self.users[email][0] != password:
            raise AuthenticationFailed("Invalid login credentials")
        user = self.users[email][1]
        if self.sign_in_without_user:
            return SignInResult(user=None)
        return SignInResult(user=user, session={"access_token": f"token-{user.id}", "token_type": "bearer"})

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        self._check("get_user")
        return self.tokens.get(access_token)

    def select_by_id(self, table: str, row_id: str, columns: str = "*") -> Optional[Dict[str, Any]]:
        self._check(f"select:{table}")
        row = self.tables[table].get(row_id)
        if row is None:
            return None
        if columns.strip() == "*":
            return dict(row)
        return {name.strip(): row.get(name.strip()) for name in columns.split(",")}

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self._check(f"insert:{table}")
        row_id = str(next(self._ids))
        self.tables[table][row_id] = {"id": row_id, **row}
        return dict(self.tables[table][row_id])

    def update_by_id(self, table: str, row_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._check(f"update:{table}")
        if row_id not in self.tables[table]:
            return None
        self.tables[table][row_id].update(values)
        return dict(self.tables[table][row_id])

    def delete_by_id(self, table: str, row_id: str) -> None:
        self._check(f"delete:{table}")
        self.tables[table].pop(row_id, None)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def context(backend, upload_dir):
    settings = load_settings(overrides={"uploads": {"directory": str(upload_dir)}})
    return build_context(settings, backend=backend)


@pytest.fixture
def client(context):
    """Create a test client for an app wired to the fake backend."""
    return TestClient(create_app(context))


@pytest.fixture
def admin_token(backend):
    return backend.add_user(ADMIN_EMAIL, ADMIN_PASSWORD, admin=True)


@pytest.fixture
def auth_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def article_data():
    """Valid article form fields, as a browser would post them."""
    return {
        "title": "Launch notes",
        "excerpt": "What shipped this week",
        "content": "Long form body text.",
        "author": "Editorial",
        "tags": '["a","b"]',
        "is_featured": "true",
    }


@pytest.fixture
def png_bytes():
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
