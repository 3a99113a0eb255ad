"""Environment configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early to ensure environment variables are set
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    rg_path: str | None = None
    default_root: Path = Field(default_factory=Path.home)
    batch_size: int = Field(default=10, gt=0)
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost"

    # File pre-flight and preview limits
    large_file_bytes: int = 1024 * 1024
    preview_max_bytes: int = 10 * 1024 * 1024
    preview_truncate_chars: int = 100_000
    binary_extensions: str = "apk,dex,so,jar,zip,class,png,jpg"

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse allowed origins as a list."""
        return [o.strip() for o in self.allowed_origins.split(",")]

    @property
    def binary_extensions_set(self) -> frozenset[str]:
        """Parse binary extensions as a lowercase set without dots."""
        return frozenset(
            e.strip().lower().lstrip(".") for e in self.binary_extensions.split(",") if e.strip()
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
