from datetime import timedelta

import pytest
from pydantic import ValidationError

from cardwise.config import Settings, scheduler_parameters
from cardwise.services.scheduler import DEFAULT_PARAMETERS


def test_defaults_match_scheduler_defaults():
    assert scheduler_parameters(Settings()) == DEFAULT_PARAMETERS


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CARDWISE_DESIRED_RETENTION", "0.85")
    monkeypatch.setenv("CARDWISE_LEARNING_STEPS_MINUTES", "[5]")
    monkeypatch.setenv("CARDWISE_REVIEW_MAX_ATTEMPTS", "5")
    cfg = Settings()
    params = scheduler_parameters(cfg)
    assert cfg.review_max_attempts == 5
    assert params.desired_retention == 0.85
    assert params.learning_steps == (timedelta(minutes=5),)


def test_invalid_scheduler_settings_fail_fast():
    with pytest.raises(ValueError):
        scheduler_parameters(Settings(relearning_steps_minutes=[]))


@pytest.mark.parametrize(
    "name, value",
    [
        ("CARDWISE_REVIEW_MAX_ATTEMPTS", "0"),
        ("CARDWISE_DESIRED_RETENTION", "1.5"),
        ("CARDWISE_DESIRED_RETENTION", "0"),
        ("CARDWISE_MAXIMUM_INTERVAL", "0"),
    ],
)
def test_out_of_range_settings_rejected_at_load(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings()
