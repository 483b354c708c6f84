import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

DEFAULT_DRAFT_FILE = Path(__file__).resolve().parent / "data" / "drafts.json"


class Settings(BaseSettings):
    remote_base_url: str = Field("http://localhost:5010", alias="JOURNEY_DRAFTS_REMOTE_URL")
    remote_timeout_seconds: float = Field(15.0, gt=0, alias="JOURNEY_DRAFTS_REMOTE_TIMEOUT")
    organization_id: Optional[str] = Field(None, alias="JOURNEY_DRAFTS_ORGANIZATION_ID")
    draft_storage_key: str = Field("training_journey_draft", alias="JOURNEY_DRAFTS_STORAGE_KEY")
    debounce_seconds: float = Field(30.0, ge=0, alias="JOURNEY_DRAFTS_DEBOUNCE_SECONDS")
    persistence_mode: Literal["memory", "file", "database"] = Field(
        "file",
        alias="JOURNEY_DRAFTS_PERSISTENCE_MODE",
    )
    draft_file_path: Optional[Path] = Field(None, alias="JOURNEY_DRAFTS_FILE")
    database_url: Optional[str] = Field(None, alias="JOURNEY_DRAFTS_DATABASE_URL")
    database_echo: bool = Field(False, alias="JOURNEY_DRAFTS_DATABASE_ECHO")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    def resolved_draft_file(self) -> Path:
        return self.draft_file_path or DEFAULT_DRAFT_FILE


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid journey draft configuration: {exc}") from exc
