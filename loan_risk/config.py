"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Service
    service_name: str = "loan-risk-engine"
    log_level: str = "INFO"

    # Raise on formula/threshold defects instead of logging and clamping
    strict_invariants: bool = False

    # Reporting
    high_risk_list_limit: int = 20
    top_borrowers_limit: int = 20


settings = Settings()
