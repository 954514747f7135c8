from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.host_config import get_hostname_settings_file


class Settings(BaseSettings):
    # Scheduler
    scheduler_tick_seconds: int = Field(default=60, ge=1, le=3600)
    scheduler_startup_delay_seconds: float = Field(default=5.0, ge=0.0)
    max_concurrent_checks: int = Field(default=100, ge=1, le=1000)

    # Retry / backoff - length of the list is the retry budget
    retry_delays_seconds: List[float] = Field(default_factory=lambda: [2.0, 5.0, 10.0])

    # Adapter calls
    adapter_call_timeout_seconds: float = Field(default=30.0, gt=0.0)

    # Checksums on fetched content
    checksum_algorithm: str = "sha256"

    # Dispatcher memory of idempotency keys
    trigger_history_size: int = Field(default=10000, ge=1)

    # Credential references are looked up as <prefix><REF> env variables
    secret_env_prefix: str = "FILE_RETRIEVAL_SECRET_"

    # Logging konfiguration
    log_level: str = "INFO"
    log_file_path: str = "logs/file_retrieval.log"
    log_retention_days: int = 30

    model_config = SettingsConfigDict(
        env_file=get_hostname_settings_file(), extra="ignore"
    )

    @field_validator("retry_delays_seconds")
    @classmethod
    def _non_negative_delays(cls, value: List[float]) -> List[float]:
        if any(delay < 0 for delay in value):
            raise ValueError("retry delays must be non-negative")
        return value

    @property
    def max_retry_attempts(self) -> int:
        return len(self.retry_delays_seconds)

    @property
    def log_directory(self) -> Path:
        """Returnerer log directory som Path objekt"""
        return Path(self.log_file_path).parent

    @property
    def config_file_info(self) -> dict:
        """Return information about which configuration file is being used."""
        from .utils.host_config import get_hostname, list_all_settings_files

        return {
            "hostname": get_hostname(),
            "active_config_file": get_hostname_settings_file(),
            "all_available_configs": list_all_settings_files(),
        }
