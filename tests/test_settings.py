# tests/test_settings.py
import pytest
from pydantic import ValidationError

from loggregator_consumer.schemas.settings import DEFAULT_KEEPALIVE_INTERVAL, ConsumerSettings


def test_defaults():
    settings = ConsumerSettings()
    assert settings.keepalive_interval == DEFAULT_KEEPALIVE_INTERVAL == 25.0
    assert settings.buffer_size == 1024
    assert settings.max_frame_size == 2**20


def test_override_does_not_leak_between_instances():
    fast = ConsumerSettings(keepalive_interval=0.01)
    assert fast.keepalive_interval == 0.01
    assert ConsumerSettings().keepalive_interval == DEFAULT_KEEPALIVE_INTERVAL


@pytest.mark.parametrize(
    "overrides",
    [{"keepalive_interval": 0}, {"buffer_size": -1}, {"open_timeout": -1.0}, {"max_frame_size": 0}],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        ConsumerSettings(**overrides)


def test_unbounded_options():
    settings = ConsumerSettings(buffer_size=0, max_frame_size=None)
    assert settings.buffer_size == 0
    assert settings.max_frame_size is None


def test_settings_are_frozen():
    settings = ConsumerSettings()
    with pytest.raises(ValidationError):
        settings.keepalive_interval = 1.0
