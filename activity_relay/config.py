from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    PORT: int = 3000
    MAX_EVENT_SIZE: int = 65536
    LOG_JSON: bool = True
    # Channel backend selection: "redis" or "memory"
    BROKER_ADAPTER: Literal["memory", "redis"] = "redis"
    BROKER_URL: str = "redis://redis:6379/0"
    CLIENT_ID: str = "activity-relay"
    EVENTS_TOPIC: str = "user-activity-events"
    CONSUMER_GROUP: str = "user-activity-consumer-group"
    CONSUMER_BATCH_SIZE: int = 10
    CONSUMER_BLOCK_MS: int = 1000
    CONSUMER_RETRY_BACKOFF: float = 1.0
    STREAM_MAXLEN: int = 10000

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
