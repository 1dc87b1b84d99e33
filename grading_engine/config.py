"""Application configuration settings."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine defaults, overridable through GRADING_* environment variables."""

    # Aggregate settings
    best_n: int = 6
    best_core: int = 4  # Core subjects counted when a core/elective split is configured
    missing_aggregate_sentinel: int = 54  # 6 subjects x worst grade value 9
    # Distribution model
    use_t_distribution: bool = True  # n-1 degrees of freedom when True, population std otherwise
    # SBA blending (percentages, must sum to 100)
    sba_enabled: bool = True
    sba_weight: float = 30.0
    exam_weight: float = 70.0
    # Reward settings
    institutional_standard: float = 5.5  # Mock standard mean grade for sig-diff
    external_baseline_default: float = 9.0  # Worst grade, used when no external results exist
    default_reward_pool: float = 10000.0
    # Optional JSON file with a full grading configuration
    grading_config_path: str | None = None

    class Config:
        env_prefix = "GRADING_"


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "text" or "json"
    ENV: str = "dev"  # dev | staging | prod

    class Config:
        env_prefix = "APP_"


logging_settings = LoggingSettings()
settings = Settings()  # type: ignore
