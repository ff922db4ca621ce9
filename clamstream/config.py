from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    # clamd endpoint
    clamav_host: str = "localhost"
    clamav_port: int = 3310

    # Seconds; 0 disables the deadline
    clamav_timeout: float = 2.0

    # Must not exceed StreamMaxLength in clamd.conf
    clamav_chunk_size: int = 2048

    # Logging
    clamav_log_level: str = "info"

    model_config = {"env_prefix": "", "case_sensitive": False, "env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
