"""
Core configuration module for the ClinicDesk backend.
Handles environment variables, settings, and application configuration.
"""

from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Application
    app_name: str = Field(default="ClinicDesk", env="APP_NAME")
    app_version: str = Field(default="1.0.0", env="APP_VERSION")
    app_env: str = Field(default="development", env="APP_ENV")
    debug: bool = Field(default=False, env="DEBUG")
    api_prefix: str = Field(default="/api/v1", env="API_PREFIX")
    
    # Security
    secret_key: str = Field(default="dev-secret-key-change-in-production")
    jwt_algorithm: str = Field(default="HS256", env="JWT_ALGORITHM")
    jwt_access_token_expire_minutes: int = Field(default=60, env="JWT_ACCESS_TOKEN_EXPIRE_MINUTES")
    
    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./clinicdesk.db", env="DATABASE_URL")
    database_pool_size: int = Field(default=10, env="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=20, env="DATABASE_MAX_OVERFLOW")
    auto_create_tables: bool = Field(default=True, env="AUTO_CREATE_TABLES")
    
    # Monitoring
    sentry_dsn: Optional[str] = Field(default=None, env="SENTRY_DSN")
    
    # Realtime
    realtime_queue_size: int = Field(default=100, env="REALTIME_QUEUE_SIZE")
    
    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://localhost:8080",
        env="CORS_ORIGINS"
    )
    cors_allow_credentials: bool = Field(default=True)
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins, str):
            return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
        return self.cors_origins
    
    @field_validator("api_prefix", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if v and isinstance(v, str):
            return v.rstrip("/")
        return v
    
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"
    
    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")
    
    @property
    def database_url_sync(self) -> str:
        """Get synchronous database URL for schema management."""
        return (
            self.database_url
            .replace("+asyncpg", "+psycopg")
            .replace("+aiosqlite", "")
        )
    
    model_config = {
        "case_sensitive": False,
        "env_prefix": "",
        "extra": "ignore",
        "env_file": ".env",
    }


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


# Global settings instance
settings = get_settings()
