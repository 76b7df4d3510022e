from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    app_name: str = "Marketplace API"
    app_env: str = "dev"
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    database_url: str
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    # --- media (listing images) ---
    media_root: Path = BASE_DIR / "media"
    media_url: str = "/media"
    max_upload_bytes: int = 10 * 1024 * 1024
    upload_chunk_size: int = 64 * 1024

    # --- pagination ---
    default_page_size: int = 20
    max_page_size: int = 100

    # --- points ---
    points_per_completed_offer: int = 10

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
