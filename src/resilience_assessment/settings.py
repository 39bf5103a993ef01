"""Service settings for the Resilience Assessment service.

All settings are read from the environment using the RESILIENCE_ prefix,
e.g. ``RESILIENCE_DATABASE_URL`` or ``RESILIENCE_LOG_JSON=true``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for resilience-assessment.

    Environment variable prefix: RESILIENCE_
    """

    service_name: str = "resilience-assessment"

    # Data store
    database_url: str = "postgresql+asyncpg://localhost:5432/resilience"
    database_echo: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Access codes
    app_base_url: str = "http://localhost:3000"
    code_prefix: str = "RES"
    token_prefix: str = "res_tk_"
    token_bytes: int = 24

    # Session lifecycle: attempts at the atomic find-or-create before giving up
    session_create_max_attempts: int = 3

    model_config = SettingsConfigDict(env_prefix="RESILIENCE_")


def get_settings() -> Settings:
    """Build settings from the current environment.

    Returns:
        A fresh Settings instance.
    """
    return Settings()
