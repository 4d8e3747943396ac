"""
Consolidated configuration for the Smile Meter CMS API.
Single source of truth, read from the environment and an optional `.env` file.
"""
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Application configuration.

    Container names are prefixed with ``cosmos_prefix`` so several environments
    can share one Cosmos account.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: str = Field("development", alias="ENVIRONMENT")
    debug: bool = Field(False, alias="DEBUG")
    app_name: str = Field("Smile Meter CMS API", alias="APP_NAME")
    app_version: str = Field("1.0.0", alias="APP_VERSION")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Cosmos DB
    cosmos_endpoint: Optional[str] = Field(None, alias="AZURE_COSMOS_ENDPOINT")
    cosmos_key: Optional[str] = Field(None, alias="AZURE_COSMOS_KEY")
    cosmos_database: str = Field("SmileMeter", alias="AZURE_COSMOS_DB")
    cosmos_prefix: str = Field("", alias="AZURE_COSMOS_DB_PREFIX")

    # Azure Storage
    azure_storage_account_url: str = Field(
        "https://localhost.blob.core.windows.net", alias="AZURE_STORAGE_ACCOUNT_URL"
    )
    azure_storage_key: Optional[str] = Field(None, alias="AZURE_STORAGE_KEY")
    azure_storage_images_container: str = Field("unit-images", alias="AZURE_STORAGE_IMAGES_CONTAINER")

    # Authentication
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    jwt_access_token_expire_minutes: int = Field(60, alias="JWT_ACCESS_TOKEN_EXPIRE_MINUTES")

    # CORS - set CORS_ORIGINS to the dashboard domain(s) in production
    cors_origins: str = Field("http://localhost:3000", alias="CORS_ORIGINS")

    # Image uploads
    max_image_size_mb: float = Field(5, alias="MAX_IMAGE_SIZE_MB")
    allowed_image_types: str = Field("image/jpeg,image/png,image/webp", alias="ALLOWED_IMAGE_TYPES")

    # Rate limiting
    rate_limit_enabled: bool = Field(True, alias="RATE_LIMIT_ENABLED")
    rate_limit_default: int = Field(60, alias="RATE_LIMIT_DEFAULT")
    rate_limit_default_window_seconds: int = Field(60, alias="RATE_LIMIT_DEFAULT_WINDOW")
    rate_limit_uploads: int = Field(20, alias="RATE_LIMIT_UPLOADS")
    rate_limit_uploads_window_seconds: int = Field(3600, alias="RATE_LIMIT_UPLOADS_WINDOW")

    # View cache
    view_cache_ttl_seconds: int = Field(60, alias="VIEW_CACHE_TTL")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def allowed_image_types_list(self) -> List[str]:
        """Parse allowed image MIME types from comma-separated string"""
        return [t.strip().lower() for t in self.allowed_image_types.split(",") if t.strip()]

    @property
    def cosmos_containers(self) -> Dict[str, str]:
        """Get all cosmos container names with prefix"""
        names = [
            "users",
            "identities",
            "units",
            "unit_images",
            "scheduled_images",
            "products",
            "unit_stock",
            "stock_transactions",
            "unit_status",
        ]
        return {name: f"{self.cosmos_prefix}{name}" for name in names}


@lru_cache()
def get_config() -> AppConfig:
    """
    Get application configuration.

    Cached so every caller shares one instance; tests clear it with
    ``get_config.cache_clear()``.
    """
    # Path: smile_cms/core/config.py -> ../../.env
    env_path = Path(__file__).resolve().parents[2] / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
    return AppConfig()
