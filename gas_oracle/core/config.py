# /gas_oracle/core/config.py
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Chain endpoint
    ETHEREUM_URL: SecretStr | None = None
    RPC_TIMEOUT_SECONDS: int = 10

    # Polling
    POLLING_FREQUENCY: int = Field(1, ge=1, le=3600)
    BOOTSTRAP_AGE_OFFSET: int = 50

    # Rolling window / reconciliation
    WINDOW_CAPACITY: int = 200
    RETENTION_DEPTH: int = 256
    RESYNC_ON_DEEP_REORG: bool = True

    # HTTP surface
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 80

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: SecretStr | None = None

    @property
    def ethereum_url(self) -> str | None:
        """Plain-text chain endpoint, or ``None`` when not configured."""
        if self.ETHEREUM_URL is None:
            return None
        return self.ETHEREUM_URL.get_secret_value()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from gas_oracle.core.logger import get_logger, configure_logging
        configure_logging()
        log = get_logger("GasOracle.Config")
        log.critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    # In a container, a hard exit is often appropriate if config fails.
    exit(1)
