import os

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class EndpointConfig(BaseModel):
    """Configuration for the hosted classification functions"""

    functions_url: str = "http://localhost:54321/functions/v1"
    api_key: str = ""
    timeout: float = 60.0
    text_function: str = "analyze-sentiment"
    voice_function: str = "analyze-voice-sentiment"


class RetryConfig(BaseModel):
    """Backoff schedule applied to rate-limited calls"""

    max_retries: int = 4
    base_delay: float = 1.0
    max_delay: float = 16.0
    jitter: float = 0.25
    cooldown_seconds: float = 8.0


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "Sentiment Analysis Orchestrator"
    version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "console"  # json or console

    endpoint: EndpointConfig = EndpointConfig(
        functions_url=os.getenv(
            "SENTIMENT_FUNCTIONS_URL", "http://localhost:54321/functions/v1"
        ),
        api_key=os.getenv("SENTIMENT_FUNCTIONS_KEY", ""),
    )
    retry: RetryConfig = RetryConfig()

    # Batch pacing between successive calls
    batch_pacing_seconds: float = 0.4

    # Client-side size ceilings
    max_text_bytes: int = 5 * 1024 * 1024
    max_audio_bytes: int = 25 * 1024 * 1024

    # HTTP client configuration
    connection_pool_size: int = 20
    connection_timeout: float = 5.0


# Global settings instance
settings = Settings()
