import os
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues."""
    db_url = os.getenv("PERIODIZATION_DATABASE_URL", "")
    if db_url:
        logger.info(f"Using PERIODIZATION_DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "periodization.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


class LoadSettings(BaseModel):
    """Training load model constants (Banister / Foster conventions)."""

    ctl_time_constant_days: float = 42.0
    atl_time_constant_days: float = 7.0
    window_days: int = 60
    trend_window_days: int = 7
    trend_band_pct: float = 0.05
    tsb_trend_points: int = 7
    tsb_trend_slope: float = 1.0

    acwr_optimal_low: float = 0.8
    acwr_optimal_high: float = 1.3
    acwr_risk_low: float = 0.5
    acwr_risk_high: float = 1.5

    monotony_low: float = 1.5
    monotony_moderate: float = 2.0
    monotony_high: float = 2.5
    strain_low: float = 3000.0
    strain_moderate: float = 4500.0
    strain_high: float = 6000.0


class ReadinessSettings(BaseModel):
    """Readiness composite weights and intensity thresholds."""

    subjective_weight: float = 35.0
    hrv_weight: float = 20.0
    sleep_weight: float = 20.0
    soreness_weight: float = 15.0
    tsb_weight: float = 10.0

    sleep_target_hours: float = 8.0
    reduce_below: float = 40.0
    push_above: float = 70.0
    improving_margin: float = 5.0
    declining_min_days: int = 3
    baseline_window_days: int = 30


class VolumeSettings(BaseModel):
    """Volume landmark classification settings."""

    approaching_buffer_fraction: float = 0.10
    novice_multiplier: float = 0.7
    intermediate_multiplier: float = 0.85
    advanced_multiplier: float = 1.0


class DeloadSettings(BaseModel):
    """Deload trigger thresholds (tunable rubric)."""

    tsb_threshold: float = -15.0
    severe_tsb_threshold: float = -25.0
    muscles_over_mrv: int = 3
    plateau_weeks: int = 2
    plateaued_exercises: int = 3
    low_readiness_threshold: float = 50.0
    low_readiness_days: int = 3
    mild_duration_days: int = 5
    moderate_duration_days: int = 7
    severe_duration_days: int = 10
    deload_cooldown_days: int = 14
    max_days_without_deload: int = 42

    plateau_window_weeks: int = 3
    plateau_min_improvement_pct: float = 1.0


class EvaluatorSettings(BaseModel):
    """Week and phase evaluator thresholds."""

    tsb_fresh: float = 10.0
    tsb_neutral_low: float = -10.0
    tsb_fatigued_low: float = -20.0
    low_compliance: float = 0.8
    at_risk_compliance: float = 0.7
    compliance_alert_weeks: int = 2
    recovery_declining_days: int = 5
    recovery_readiness_avg: float = 40.0
    increase_readiness_avg: float = 70.0
    fatigued_volume_change_pct: int = -15
    low_compliance_volume_change_pct: int = -25
    increase_volume_change_pct: int = 10

    progress_tolerance: float = 15.0
    extension_deficit: float = 20.0
    extension_max_days_remaining: int = 14
    extension_cap_days: int = 14
    min_daily_progress_rate: float = 0.5
    shorten_min_days_remaining: int = 7
    shorten_min_progress: float = 90.0
    shorten_fraction: float = 0.3
    insert_tsb: float = -25.0
    insert_readiness_avg: float = 40.0
    insert_duration_days: int = 7
    insert_expiry_days: int = 3
    phase_expiry_days: int = 7


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="PERIODIZATION_DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="PERIODIZATION_LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="PERIODIZATION_LOG_FILE")
    collector_timeout_s: float = Field(
        default=30.0,
        validation_alias="PERIODIZATION_COLLECTOR_TIMEOUT_S",
        description="Upper bound for the parallel collaborator reads of one evaluation",
    )

    load: LoadSettings = Field(default_factory=LoadSettings)
    readiness: ReadinessSettings = Field(default_factory=ReadinessSettings)
    volume: VolumeSettings = Field(default_factory=VolumeSettings)
    deload: DeloadSettings = Field(default_factory=DeloadSettings)
    evaluator: EvaluatorSettings = Field(default_factory=EvaluatorSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PERIODIZATION_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("collector_timeout_s")
    @classmethod
    def validate_collector_timeout(cls, value: float) -> float:
        """Reject non-positive timeouts, falling back to the default."""
        if value <= 0:
            logger.warning(f"PERIODIZATION_COLLECTOR_TIMEOUT_S must be positive, got {value}. Defaulting to 30s.")
            return 30.0
        return value


settings = Settings()
