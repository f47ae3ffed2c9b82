"""Tests for environment-driven settings."""
from activity_relay.config import Settings


def test_defaults(monkeypatch):
    for name in ["PORT", "BROKER_ADAPTER", "BROKER_URL", "EVENTS_TOPIC", "CONSUMER_GROUP"]:
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.PORT == 3000
    assert settings.BROKER_ADAPTER == "redis"
    assert settings.BROKER_URL == "redis://redis:6379/0"
    assert settings.EVENTS_TOPIC == "user-activity-events"
    assert settings.CONSUMER_GROUP == "user-activity-consumer-group"


def test_environment_overrides(monkeypatch):
    """Test broker address and port come from the environment."""
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("BROKER_URL", "redis://broker.internal:6380/2")
    monkeypatch.setenv("BROKER_ADAPTER", "memory")

    settings = Settings(_env_file=None)

    assert settings.PORT == 8080
    assert settings.BROKER_URL == "redis://broker.internal:6380/2"
    assert settings.BROKER_ADAPTER == "memory"
