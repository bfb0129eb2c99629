"""Configuration settings."""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""
    
    inventory_base_url: str = "http://localhost:8081/fe-v1"
    inventory_token: Optional[str] = None
    request_timeout: float = 10.0
    
    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"
    
    # Query defaults
    default_page_size: int = 10
    summary_max_length: int = 100
    device_value_size_hint: int = 50
    
    # Editing sessions
    session_ttl_hours: int = 24
    max_sessions: int = 500
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "DEVICE_QUERY_"
        extra = "ignore"  # Ignore extra fields from .env


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
