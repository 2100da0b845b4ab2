"""
Adapter for the hosted Supabase backend (auth + Postgres tables).

This module provides:
- A ``BackendService`` protocol listing the only operations the admin API needs
- ``SupabaseBackend``, the production implementation on the supabase SDK

SDK and transport errors never leave this module as SDK types: they are logged
and re-raised as ``BackendError`` (or ``AuthenticationFailed`` for rejected
credentials) so callers can map them onto HTTP responses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, Optional, Protocol

import httpx
from supabase import AuthError, Client, PostgrestAPIError, create_client

from .configuration import SupabaseSettings

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """The hosted service failed or returned an error payload."""


class AuthenticationFailed(BackendError):
    """The hosted auth service rejected the credentials or token."""


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None


@dataclass
class SignInResult:
    user: Optional[AuthUser]
    session: Dict[str, Any] = field(default_factory=dict)


class BackendService(Protocol):
    def sign_in_with_password(self, email: str, password: str) -> SignInResult: ...

    def get_user(self, access_token: str) -> Optional[AuthUser]: ...

    def select_by_id(self, table: str, row_id: str, columns: str = "*") -> Optional[Dict[str, Any]]: ...

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]: ...

    def update_by_id(self, table: str, row_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    def delete_by_id(self, table: str, row_id: str) -> None: ...


def _dump(model: Any) -> Dict[str, Any]:
    if model is None:
        return {}
    if hasattr(model, "model_dump"):
        return model.model_dump(mode="json")
    return dict(model)


class SupabaseBackend:
    """
    ``BackendService`` backed by a service-role Supabase client.

    The data client is created lazily on first use, so the API can start (and
    serve health checks) before credentials are configured.
    """

    def __init__(self, settings: SupabaseSettings) -> None:
        self.settings = settings
        self._client: Optional[Client] = None
        self._client_lock = Lock()

    def _new_client(self) -> Client:
        if not self.settings.configured:
            raise BackendError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be configured")
        try:
            return create_client(self.settings.url, self.settings.service_role_key)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Failed to create Supabase client: {exc}")
            raise BackendError("Could not create Supabase client") from exc

    @property
    def client(self) -> Client:
        with self._client_lock:
            if self._client is None:
                self._client = self._new_client()
            return self._client

    def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        # A signed-in client swaps its Authorization header to the user's JWT,
        # so sign-in happens on a throwaway client and the shared one stays
        # on the service role.
        auth_client = self._new_client()
        try:
            response = auth_client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as exc:
            logger.error(f"Auth error: {exc}")
            raise AuthenticationFailed(str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.error(f"Auth request failed: {exc}")
            raise BackendError(str(exc)) from exc

        user = response.user
        return SignInResult(
            user=AuthUser(id=str(user.id), email=user.email) if user else None,
            session=_dump(response.session),
        )

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        try:
            response = self.client.auth.get_user(access_token)
        except AuthError as exc:
            logger.info(f"Rejected access token: {exc}")
            raise AuthenticationFailed(str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.error(f"Token verification request failed: {exc}")
            raise BackendError(str(exc)) from exc
        if response is None or response.user is None:
            return None
        return AuthUser(id=str(response.user.id), email=response.user.email)

    def _execute(self, description: str, query: Any) -> list[Dict[str, Any]]:
        try:
            response = query.execute()
        except (PostgrestAPIError, httpx.HTTPError) as exc:
            logger.error(f"Supabase {description} failed: {exc}")
            raise BackendError(f"{description} failed") from exc
        return list(response.data or [])

    def select_by_id(self, table: str, row_id: str, columns: str = "*") -> Optional[Dict[str, Any]]:
        query = self.client.table(table).select(columns).eq("id", row_id).limit(1)
        rows = self._execute(f"select from {table}", query)
        return rows[0] if rows else None

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = self._execute(f"insert into {table}", self.client.table(table).insert(row))
        if not rows:
            raise BackendError(f"insert into {table} returned no rows")
        return rows[0]

    def update_by_id(self, table: str, row_id: str, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        query = self.client.table(table).update(values).eq("id", row_id)
        rows = self._execute(f"update {table}", query)
        return rows[0] if rows else None

    def delete_by_id(self, table: str, row_id: str) -> None:
        self._execute(f"delete from {table}", self.client.table(table).delete().eq("id", row_id))
