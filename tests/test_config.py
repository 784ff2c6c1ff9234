import pytest

from src.dispatch.config import Settings


def test_defaults():
    config = Settings()

    assert config.default_max_stops == 8
    assert config.cluster_distance_thresholds == (30.0, 80.0, 150.0)
    assert config.elastic_buffer_minutes == 20.0


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DISPATCH_MAX_RETRIES", "4")
    monkeypatch.setenv("DISPATCH_CLUSTER_DISTANCE_THRESHOLDS", "[10, 20]")
    monkeypatch.setenv("DISPATCH_FRONTEND_ALLOWED_ORIGINS", '["https://dispatch.example.com"]')

    config = Settings()

    assert config.max_retries == 4
    assert config.cluster_distance_thresholds == (10.0, 20.0)
    assert config.frontend_allowed_origins == ("https://dispatch.example.com",)


def test_tuple_fields_accept_plain_lists():
    config = Settings(cluster_distance_thresholds=[5, 15], frontend_allowed_origins="http://a, http://b")

    assert config.cluster_distance_thresholds == (5.0, 15.0)
    assert config.frontend_allowed_origins == ("http://a", "http://b")


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        Settings(road_factor=0)
