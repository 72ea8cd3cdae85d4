from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', case_sensitive=True)
    API_BASE_URL: str = 'http://localhost:8000'
    API_PREFIX: str = '/api/v1'
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    MAX_SSE_CONNECTIONS: int = 4
    POLL_INTERVAL_SECONDS: float = 2.0
    TERMINAL_RETENTION_SECONDS: float = 30.0
    IDLE_TIMEOUT_SECONDS: float | None = None
    NOTIFY_ON_START: bool = False
    LOG_LEVEL: str = 'INFO'
    UI_PORT: int = 8501


settings = Settings()
