from functools import lru_cache

from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    API_URL: str = "http://localhost:8000"
    PAGE_SIZE: int = 10
    REFRESH_INTERVAL: float = 10.0
    REQUEST_TIMEOUT: float = 10.0
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "RECORDS_"
        extra = "ignore"


@lru_cache()
def get_client_settings() -> ClientSettings:
    """Return cached client settings instance."""
    return ClientSettings()
