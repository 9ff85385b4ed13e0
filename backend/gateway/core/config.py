"""
Application Configuration
从环境变量加载配置
"""

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Environment
    ENVIRONMENT: str = "development"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Ensure critical settings are configured in production"""
        if self.ENVIRONMENT == "production":
            if "*" in self.CORS_ORIGINS:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production! "
                    "List the allowed client origins explicitly."
                )
        return self

    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"  # DEBUG, INFO, WARNING, ERROR

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8787

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # Credential shared by the realtime and the translation provider.
    # 缺失时仅在启动时警告，每个会话在 start 时单独失败
    OPENAI_API_KEY: str = ""

    # Upstream realtime provider
    REALTIME_URL: str = "wss://api.openai.com/v1/realtime"
    REALTIME_MODEL: str = "gpt-4o-realtime-preview-2024-10-01"
    INPUT_TRANSCRIPTION_MODEL: str = "whisper-1"
    UPSTREAM_PING_INTERVAL: float = 20.0

    # Server VAD (低延迟分段)
    VAD_THRESHOLD: float = 0.5
    VAD_PREFIX_PADDING_MS: int = 300
    VAD_SILENCE_DURATION_MS: int = 500

    # Secondary translation provider
    TRANSLATION_BASE_URL: str = "https://api.openai.com/v1"
    TRANSLATION_MODEL: str = "gpt-4o-mini"
    TRANSLATION_TEMPERATURE: float = 0.3
    TRANSLATION_TIMEOUT: float | None = None  # seconds, None = wait forever
    TRANSLATION_ORDERED: bool = True  # deliver segment translations in segment order

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
