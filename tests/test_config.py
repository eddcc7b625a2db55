from buildingdesk.config import Settings


def test_workflow_defaults():
    settings = Settings(_env_file=None)

    assert settings.default_event_duration_hours == 2
    assert settings.default_max_reminders == 3
    assert settings.default_reminder_days == [7, 3, 1]
    assert settings.currency == "GBP"


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_MAX_REMINDERS", "5")
    monkeypatch.setenv("DEFAULT_GRACE_PERIOD_DAYS", "14")
    monkeypatch.setenv("JSON_LOGS", "true")

    settings = Settings(_env_file=None)

    assert settings.default_max_reminders == 5
    assert settings.default_grace_period_days == 14
    assert settings.json_logs is True
