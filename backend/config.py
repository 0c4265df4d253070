from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"

VERSION = "1.0.0"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 4000

    # =================================================================
    # SMTP SETTINGS
    # =================================================================
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_SENDER: str = "Backend <no-reply@example.com>"
    SMTP_TIMEOUT: float = 5.0
    SMTP_VERIFY_ON_STARTUP: bool = False

    # Delivery retry policy (fixed interval, no jitter)
    MAIL_MAX_ATTEMPTS: int = 3
    MAIL_RETRY_BACKOFF_SECONDS: float = 30.0

    # None waits for every background task before exiting
    SHUTDOWN_TIMEOUT_SECONDS: float | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_mail_config(self) -> dict:
        """Get mail transport and retry configuration."""
        return {
            "host": self.SMTP_HOST,
            "port": self.SMTP_PORT,
            "username": self.SMTP_USERNAME,
            "password": self.SMTP_PASSWORD,
            "timeout": self.SMTP_TIMEOUT,
            "sender": self.SMTP_SENDER,
            "max_attempts": self.MAIL_MAX_ATTEMPTS,
            "backoff": self.MAIL_RETRY_BACKOFF_SECONDS,
        }


settings = Settings()
