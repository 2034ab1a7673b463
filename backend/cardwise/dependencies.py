from datetime import datetime, timezone
from functools import lru_cache

from fastapi import Header

from cardwise.config import scheduler_parameters, settings
from cardwise.services.scheduler import SchedulerParameters


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Requesting user; falls back to the configured default user."""
    return x_user_id or settings.default_user_id


def get_now() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache
def get_scheduler_parameters() -> SchedulerParameters:
    return scheduler_parameters(settings)
