"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Storage layout
    # ------------------------------------------------------------------
    data_root: Path = Path("data")

    # Registry + upload index; default to <data_root>/db.json and uploads.json
    db_json_path:      Path | None = None
    uploads_json_path: Path | None = None

    max_upload_bytes: int = 50 * 1024 * 1024   # 50 MB

    # ------------------------------------------------------------------
    # Marker extraction
    # ------------------------------------------------------------------
    marker_min_line_length: int = 20   # lines must be LONGER than this
    marker_max_fields:      int = 10

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------
    embedding_dimensions:      int = 384
    embedding_min_text_length: int = 5
    embedding_concurrency:     int = Field(4, ge=1)

    # Local sentence-transformers model (optional extra)
    local_embeddings_enabled: bool = True
    local_embedding_model:    str  = "all-MiniLM-L6-v2"
    embedding_warmup:         bool = False   # load the local model at startup

    # OpenAI: an empty key disables the remote strategy
    openai_api_key:         str   = ""
    openai_embedding_model: str   = "text-embedding-3-small"
    openai_timeout_seconds: float = 30.0

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str  = "development"   # development | staging | production
    debug:   bool = False
    port:    int  = 5000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def upload_dir(self) -> Path:
        return self.data_root / "uploads"

    @property
    def output_dir(self) -> Path:
        return self.data_root / "outputs"

    @property
    def marker_dir(self) -> Path:
        return self.data_root / "markers"

    @property
    def embed_dir(self) -> Path:
        return self.data_root / "embeds"

    @property
    def registry_path(self) -> Path:
        return self.db_json_path or self.data_root / "db.json"

    @property
    def upload_index_path(self) -> Path:
        return self.uploads_json_path or self.data_root / "uploads.json"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
