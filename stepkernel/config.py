from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    default_tz: str | None = None  # IANA name; None = device local zone

    # Daily goal / history
    default_daily_goal: int = 7500  # Steps; stored per record when written
    history_retention_days: int = 30  # Records kept, oldest evicted first

    # Entitlement gating (applied above the phase calculator)
    free_phase_cap: int = 2  # Highest phase reachable without premium

    log_level: str = "INFO"
    log_file: str | None = None

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
