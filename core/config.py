"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database settings
    db_host: str = "localhost"
    db_port: str = "5432"
    db_user: str = "user"
    db_password: str = "password"
    db_name: str = "studysync"
    database_url: Optional[str] = None  # Full URL override (e.g. sqlite:// for tests)

    # JWT settings
    jwt_secret_key: str = "change-this-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_days: int = 30

    # AI settings
    ai_provider: str = "gemini"  # gemini or openai
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    openai_model: str = "gpt-4o-mini"
    ai_summary_max_tokens: int = 1000
    ai_flashcards_max_tokens: int = 2000
    ai_keywords_max_tokens: int = 1500
    ai_request_timeout_seconds: float = 60.0

    # Study guide settings
    min_content_length: int = 10
    significant_change_threshold: int = 100
    default_page_size: int = 10
    max_page_size: int = 100

    # Application settings
    app_name: str = "StudySync API"
    app_version: str = "0.1.0"
    debug: bool = False
    frontend_url: str = "http://localhost:3000"
    host: str = "0.0.0.0"
    port: int = 5000

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    enable_file_logging: bool = True
    log_directory: str = "logs"
    app_log_file: str = "app.log"
    error_log_file: str = "error.log"
    security_log_file: str = "security.log"
    ai_log_file: str = "ai.log"
    database_log_file: str = "database.log"
    access_log_file: str = "access.log"
    realtime_log_file: str = "realtime.log"
    log_rotation_when: str = "size"  # size, or a TimedRotatingFileHandler "when" value
    log_rotation_interval: int = 1
    log_file_max_size_mb: int = 10
    log_file_backup_count: int = 5
    log_compression: bool = True
    enable_request_logging: bool = True
    enable_sql_logging: bool = False

    # Security settings
    enable_security_headers: bool = True
    enable_request_size_limit: bool = True
    max_request_size_bytes: int = 5 * 1024 * 1024  # 5MB
    enable_request_timeout: bool = True
    request_timeout_seconds: int = 300  # 5 minutes

    @property
    def sqlalchemy_database_url(self) -> str:
        """Database URL, built from individual components unless overridden."""
        if self.database_url:
            return self.database_url
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
