from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from core.storage.r2 import UploadTarget

# Load .env file from project root
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


DEFAULT_CONFIG_PATH = "config/default.yaml"


class R2Settings(BaseModel):
    access_key_id: str = ""
    secret_access_key: str = ""
    access_key_id_env: str = "R2_ACCESS_KEY_ID"
    secret_access_key_env: str = "R2_SECRET_ACCESS_KEY"
    endpoint: str = ""
    bucket_name: str = ""
    target_path: str = "/{year}/{mon}/{day}/{filename}"
    custom_domain_name: str = ""

    @field_validator("endpoint", "custom_domain_name", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str:
        return (value or "").strip().rstrip("/")

    @property
    def resolved_access_key_id(self) -> str:
        return self.access_key_id or os.getenv(self.access_key_id_env, "")

    @property
    def resolved_secret_access_key(self) -> str:
        return self.secret_access_key or os.getenv(self.secret_access_key_env, "")

    def to_target(self) -> UploadTarget:
        return UploadTarget(
            access_key_id=self.resolved_access_key_id,
            secret_access_key=self.resolved_secret_access_key,
            endpoint=self.endpoint,
            bucket_name=self.bucket_name,
            path_template=self.target_path,
            custom_domain_name=self.custom_domain_name,
        )


class UploadSettings(BaseModel):
    use_image_name_as_alt_text: bool = True
    update_original_document: bool = True
    confirm_before_upload: bool = True
    upload_external_images: bool = False
    request_timeout_seconds: float = Field(30.0, gt=0.0, le=600.0)


class VaultSettings(BaseModel):
    root: str = "."
    attachment_folder: str = "/"
    document_extensions: list[str] = Field(default_factory=lambda: [".md"])

    @field_validator("document_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: object) -> list[str]:
        if value is None:
            return [".md"]
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ValueError("document_extensions must be a list of extensions")
        normalized = []
        for item in value:
            ext = str(item).strip().lower()
            if ext:
                normalized.append(ext if ext.startswith(".") else f".{ext}")
        return normalized or [".md"]

    @property
    def root_path(self) -> Path:
        return Path(self.root).expanduser()


class DownloadSettings(BaseModel):
    max_size_bytes: int = Field(50 * 1024 * 1024, gt=0)
    timeout_seconds: float = Field(30.0, gt=0.0, le=600.0)


class QueueSettings(BaseModel):
    broker_url_env: str = "CELERY_BROKER_URL"
    result_backend_env: str | None = "CELERY_RESULT_BACKEND"

    @property
    def broker_url(self) -> str:
        value = os.getenv(self.broker_url_env)
        if not value:
            raise RuntimeError("Celery broker URL is not configured")
        return value

    @property
    def result_backend(self) -> str | None:
        if not self.result_backend_env:
            return None
        return os.getenv(self.result_backend_env)


class Settings(BaseModel):
    r2: R2Settings = Field(default_factory=R2Settings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    vault: VaultSettings = Field(default_factory=VaultSettings)
    download: DownloadSettings = Field(default_factory=DownloadSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Load settings from YAML configuration file.

        Args:
            path: Optional path to configuration file. If not provided, uses
                R2_UPLOADER_CONFIG environment variable or defaults to config/default.yaml.

        Returns:
            Settings instance with loaded configuration.

        Raises:
            FileNotFoundError: If configuration file does not exist.
            ValueError: If configuration is invalid.
        """
        config_path = path or Path(os.getenv("R2_UPLOADER_CONFIG", DEFAULT_CONFIG_PATH))
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        with config_path.open("r", encoding="utf-8") as fp:
            payload = yaml.safe_load(fp) or {}
        try:
            return cls(**payload)
        except Exception as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings(path: str | None = None) -> Settings:
    return Settings.load(Path(path) if path else None)


__all__ = [
    "Settings",
    "R2Settings",
    "UploadSettings",
    "VaultSettings",
    "DownloadSettings",
    "QueueSettings",
    "get_settings",
]
