from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Office Queue Service"
    DATABASE_URL: str = "sqlite:///./queue.db"
    LOG_LEVEL: str = "INFO"
    AUTO_CREATE_TABLES: bool = True

    # Grace period during which served/no_show/cancelled can be reverted
    UNDO_WINDOW_SECONDS: float = 5.0
    # Offset added to the serving ticket's created_at when prioritizing
    PRIORITY_EPSILON_MS: int = 1

    STATS_FETCH_RETRIES: int = 3
    STATS_RETRY_DELAY_SECONDS: float = 1.0

    class Config:
        env_file = ".env"

settings = Settings()
