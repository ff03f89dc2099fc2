"""
Centralized configuration for Cromwell CMS

All values come from the environment (or a local .env file).
"""
import json
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API Settings
    API_TITLE: str = "Cromwell CMS API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "REST API for Cromwell CMS"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 4016
    CMS_ENV: str = "prod"

    # Database
    DATABASE_URL: str = ""

    # CORS - Can be string (comma-separated) or JSON array
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:4016,http://localhost:4064"

    # Auth
    AUTH_SECRET: str = ""

    # Cache
    REDIS_URL: Optional[str] = None
    REDIS_PREFIX: str = "cromwell:"
    CACHE_MEMORY_MAX: int = 1000
    CACHE_DEFAULT_TTL: int = 300
    CACHE_COMPRESSION: bool = True

    # Performance monitoring
    PERFORMANCE_SLOW_REQUEST_THRESHOLD: int = 1000  # ms
    PERFORMANCE_HISTORY_SIZE: int = 1000

    # Query monitoring
    DB_SLOW_QUERY_THRESHOLD: int = 1000  # ms
    DB_QUERY_CACHE: bool = True

    # Files and modules
    PUBLIC_DIR: str = "public"
    MODULES_DIR: str = "modules"
    DEFAULT_PAGE_SIZE: int = 15

    # Manager
    MANAGER_CACHE_DIR: str = ".cromwell"
    CMS_API_URL: str = "http://localhost:4016"
    WATCH_POLL_MS: int = 2000
    USE_WATCH: bool = True
    ADMIN_PANEL_PORT: int = 4064
    RENDERER_PORT: int = 4128
    SERVER_COMMAND: str = "uvicorn cromwell.main:app --host 0.0.0.0"
    ADMIN_PANEL_COMMAND: str = "npx cromwella-admin"
    RENDERER_COMMAND: str = "npx cromwella-renderer"
    NGINX_COMMAND: str = "docker compose up nginx"

    @property
    def is_development(self) -> bool:
        return self.CMS_ENV == "dev"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:4016"]

        # Try JSON parse first (for array format)
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


settings = Settings()
