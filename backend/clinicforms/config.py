"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Database (defaults to SQLite for local dev, use PostgreSQL in production)
    database_url: str = "sqlite:///./clinic_forms.db"
    
    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    
    # Logging
    log_level: str = "INFO"
    
    # Fallback for the system.place prefill field
    default_place: Optional[str] = None
    
    # Builder command history depth
    history_limit: int = 50
    
    # Recommended client-side debounce for live calculations
    calculation_debounce_ms: int = 100
    
    # Debug mode
    debug: bool = True
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]
    
    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
