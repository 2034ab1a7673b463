from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from cardwise.services.scheduler import SchedulerParameters


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".cardwise" / "data"
    sqlite_filename: str = "cardwise.db"
    default_user_id: str = "00000000-0000-0000-0000-000000000001"
    log_level: str = "warning"

    # Review submission retries on a concurrent write to the same card
    review_max_attempts: int = Field(default=3, ge=1)

    # Scheduler tuning; weights stay at the FSRS-5 defaults
    desired_retention: float = Field(default=0.9, gt=0, lt=1)
    maximum_interval: int = Field(default=36500, ge=1)
    learning_steps_minutes: list[float] = [1.0, 10.0]
    relearning_steps_minutes: list[float] = [10.0]

    model_config = {"env_prefix": "CARDWISE_"}


settings = Settings()


def scheduler_parameters(cfg: Settings | None = None) -> SchedulerParameters:
    """Build the scheduler parameter set from application settings."""
    cfg = cfg or settings
    return SchedulerParameters(
        desired_retention=cfg.desired_retention,
        maximum_interval=cfg.maximum_interval,
        learning_steps=tuple(timedelta(minutes=m) for m in cfg.learning_steps_minutes),
        relearning_steps=tuple(
            timedelta(minutes=m) for m in cfg.relearning_steps_minutes
        ),
    )
