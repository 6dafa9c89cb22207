from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    DATABASE_URL: str = "postgresql+asyncpg://bioshift:bioshift_secret@db:5432/bioshift"
    LOG_LEVEL: str = "INFO"

    # Alembic upgrade on startup; tests and local sqlite runs switch it off
    RUN_MIGRATIONS_ON_STARTUP: bool = True
    ALEMBIC_CWD: str = "/app"

    # Time-in rules
    GRACE_PERIOD_MINUTES: int = 15
    EARLY_TIME_IN_WINDOW_HOURS: int = 2

    # Time-out rules
    DOUBLE_PUNCH_MINUTES: int = 10
    MAX_SHIFT_MINUTES: int = 1200
    LUNCH_DEDUCTION_THRESHOLD_HOURS: int = 5
    LUNCH_DEDUCTION_MINUTES: int = 60
    OVERTIME_THRESHOLD_MINUTES: int = 30
    # A lone scan this many hours past the scheduled end is a very late time-in
    SINGLE_SCAN_LATE_TIME_IN_HOURS: int = 2

    # Scan pattern warnings on attendance rows
    EXTREME_EARLY_TIME_IN_MINUTES: int = 180
    EXTREME_LATE_TIME_OUT_MINUTES: int = 240
    EXTREME_EARLY_TIME_OUT_MINUTES: int = 180
    STRAY_SCAN_HOURS: int = 2

    # Anomaly thresholds
    SIMULTANEOUS_SITES_MAX_TRAVEL_MINUTES: int = 30
    SIMULTANEOUS_SITES_HIGH_MINUTES: int = 10
    DUPLICATE_SCANS_HIGH_COUNT: int = 5
    UNUSUAL_HOURS_START: int = 2
    UNUSUAL_HOURS_END: int = 5
    EXCESSIVE_SCANS_PER_DAY: int = 6
    EXCESSIVE_SCANS_HIGH: int = 10

    # Unmatched-name suggestions only; never used to resolve
    FUZZY_SUGGEST_THRESHOLD: int = 80


settings = Settings()
