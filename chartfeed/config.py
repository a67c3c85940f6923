from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class HttpConfig(BaseModel):
    base_url: str = "http://localhost:8000/api"
    timeout_seconds: float = 10.0


class CacheConfig(BaseModel):
    ttl_seconds: float = 30.0
    sweep_interval_seconds: float = 60.0


class ChartConfig(BaseModel):
    default_pane1: str = "CurrentPrice"
    default_pane2: str = "AllExchangesVolume"


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="CHARTFEED_", extra="ignore")

    prefs_db_path: str = "chartfeed_prefs.db"
    audit_log_path: Optional[str] = None
    # CHARTFEED_BASE_URL; wins over http.base_url
    base_url: Optional[str] = None

    http: HttpConfig = HttpConfig()
    cache: CacheConfig = CacheConfig()
    chart: ChartConfig = ChartConfig()


def load_config(path: Optional[str] = None) -> ClientSettings:
    settings = ClientSettings()
    if path:
        cfg_path = Path(path)
        if cfg_path.exists():
            data = yaml.safe_load(cfg_path.read_text()) or {}
            return ClientSettings(**data)
    return settings


def api_base(settings: ClientSettings) -> str:
    return (settings.base_url or settings.http.base_url).rstrip("/")
