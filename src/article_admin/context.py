from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .backend import BackendService, SupabaseBackend
from .configuration import Settings
from .service import AdminService


@dataclass
class AppContext:
    """Everything a request handler needs, built once per process and kept on ``app.state``."""

    settings: Settings
    service: AdminService


def build_context(settings: Settings, backend: Optional[BackendService] = None) -> AppContext:
    backend = backend or SupabaseBackend(settings.supabase)
    return AppContext(settings=settings, service=AdminService.from_settings(settings, backend))
