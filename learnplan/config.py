from pydantic_settings import BaseSettings
from pathlib import Path

# Get the project root directory (parent of learnplan folder)
PROJECT_ROOT = Path(__file__).parent.parent

class Settings(BaseSettings):
    """Scheduling core configuration loaded from environment variables"""
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'learnplan.db'}"
    log_level: str = "INFO"

    # Capacity utilization thresholds (percent)
    capacity_warning_percent: float = 75.0
    capacity_over_percent: float = 90.0

    # SM-2 spaced repetition
    sm2_initial_ease: float = 2.5
    sm2_min_ease: float = 1.3
    sm2_max_ease: float = 2.5
    sm2_first_interval: int = 1
    sm2_second_interval: int = 6
    sm2_max_interval_days: int = 240  # ~8 months
    sm2_passing_quality: int = 3
    sm2_reviewing_min_repetitions: int = 2
    sm2_mastered_min_repetitions: int = 4
    sm2_mastered_min_interval_days: int = 120

    # Slot search
    slot_horizon_days: int = 14
    slot_max_results: int = 5
    auto_reschedule_max_difficulty: int = 5  # easiest slot must be at most this hard

    # Catch-up lane
    catch_up_escalation_days: int = 7  # one priority level per full week missed
    catch_up_redistribute_max: int = 5

    class Config:
        env_file = str(PROJECT_ROOT / ".env")

settings = Settings()
