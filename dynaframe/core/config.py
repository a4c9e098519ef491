"""
Centralised engine settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── DynamoDB ─────────────────────────────────────────
    aws_region: str = "us-east-1"
    dynamodb_endpoint_url: str = ""  # e.g. http://localhost:8000 for DynamoDB Local
    connection_test_table: str = ""

    # ── Pagination guards ────────────────────────────────
    max_pages: int = 1000
    max_items: int = 1_000_000
    max_query_seconds: float = 60.0

    # ── Upload ───────────────────────────────────────────
    max_upload_payload_kb: int = 0  # 0 = no installation-wide cap
    presets_file: str = ""

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
