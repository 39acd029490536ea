"""
Configuration settings for the Workflow Engine.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "ResearchFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Workflow Engine
    DEFAULT_NODE_TIMEOUT: float = 0  # Seconds; 0 disables the bound
    FAILURE_POLICY: str = "pause"  # "pause" or "fail_fast"
    CONCURRENT_NODES: bool = False  # Run independent ready nodes together

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
