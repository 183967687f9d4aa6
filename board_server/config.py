from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Priority: environment variables > .env file
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # 0 keeps every session for the life of the process.
    SESSION_IDLE_TTL_SECONDS: int = 0
    SESSION_SWEEP_INTERVAL_SECONDS: int = 60
    MAX_SESSION_ID_LENGTH: int = 128
    # Third-party code runner used by the editor panel (Piston API).
    EXECUTION_API_URL: str = "https://emkc.org/api/v2/piston/execute"
    EXECUTION_TIMEOUT_SECONDS: int = 30
    INSTANCE_ID: str = "unknown-instance"


config = Settings()
