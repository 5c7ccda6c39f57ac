from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )
    
    # Database
    database_url: str = "sqlite+aiosqlite:///./liftout.db"
    
    # Notifications: outbox (persisted) | log (dev console only)
    notification_mode: str = "outbox"
    
    # Upper bound for any call into an external collaborator
    collaborator_timeout_seconds: float = 5.0
    
    # Conversation service (unset = log-only dev stub)
    conversation_service_url: Optional[str] = None
    
    # Engagement rules
    eoi_ttl_days: int = 30
    min_team_size: int = 2
    
    # App
    debug: bool = False
    allowed_origins: Optional[str] = None


settings = Settings()
