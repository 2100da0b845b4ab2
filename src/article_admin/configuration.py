from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config" / "defaults.yaml"


class SupabaseSettings(BaseModel):
    url: str = ""
    service_role_key: str = ""
    admins_table: str = "admins"
    articles_table: str = "articles"

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_role_key)


class UploadSettings(BaseModel):
    directory: Path = Path("uploads")
    url_prefix: str = "/uploads/"
    max_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    allowed_types: Dict[str, List[str]] = Field(default_factory=dict)


class ServerSettings(BaseModel):
    admin_prefix: str = "/api/admin"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


class Settings(BaseModel):
    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)


@lru_cache(maxsize=4)
def _load_config_file(config_path: Path) -> DictConfig:
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found at {config_path}")
    return OmegaConf.load(config_path)


def make_runtime_config(overrides: Optional[Dict[str, Any]] = None, config_path: Path = DEFAULT_CONFIG_PATH) -> DictConfig:
    """Merge ``overrides`` on top of the YAML defaults without resolving env interpolation."""
    base = OmegaConf.create(OmegaConf.to_container(_load_config_file(config_path), resolve=False))
    OmegaConf.set_struct(base, True)
    if not overrides:
        return base
    return DictConfig(OmegaConf.merge(base, OmegaConf.create(overrides)))


def load_settings(config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Build the process settings.

    Values in ``.env`` are exported first so ``${oc.env:...}`` interpolations in
    the YAML pick them up. Unknown override keys raise, since the base config is
    in struct mode.
    """
    load_dotenv()
    config = make_runtime_config(overrides, config_path or DEFAULT_CONFIG_PATH)
    container = OmegaConf.to_container(config, resolve=True)
    return Settings.model_validate(container)
