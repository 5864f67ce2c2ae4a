"""Tests for configuration defaults, validation and environment overrides."""

import pytest

from termflow.config import Config, QueueConfig, RendererConfig


def test_defaults():
    config = Config()

    assert config.queue.max_queue_size == 500
    assert config.queue.min_render_interval_ms == 50
    assert config.queue.batch_size == 10
    assert config.queue.rate_limiting is True
    assert config.queue.max_outputs_per_second == 30
    assert config.queue.smooth_scrolling is True
    assert config.queue.scroll_step == 5
    assert config.queue.scroll_delay_ms == 16
    assert config.renderer.chunk_size == 20
    assert config.renderer.chunk_delay_ms == 50
    assert config.renderer.enable_pagination is True
    assert config.renderer.page_size == 100
    assert config.renderer.adaptive is True


@pytest.mark.parametrize(
    "section",
    [
        QueueConfig(max_queue_size=0),
        QueueConfig(batch_size=-1),
        QueueConfig(scroll_delay_ms=-5),
        RendererConfig(chunk_size=0),
        RendererConfig(page_size=0),
    ],
)
def test_validate_rejects_bad_values(section):
    with pytest.raises(ValueError):
        section.validate()


def test_from_env_applies_overrides():
    config = Config.from_env(
        {
            "TERMFLOW_MAX_QUEUE_SIZE": "42",
            "TERMFLOW_RATE_LIMITING": "off",
            "TERMFLOW_CHUNK_DELAY_MS": "0",
            "TERMFLOW_AUTO_RECOVER": "false",
            "UNRELATED": "1",
        }
    )

    assert config.queue.max_queue_size == 42
    assert config.queue.rate_limiting is False
    assert config.renderer.chunk_delay_ms == 0
    assert config.auto_recover is False


def test_from_env_empty_values_keep_defaults():
    config = Config.from_env({"TERMFLOW_BATCH_SIZE": ""})
    assert config.queue.batch_size == 10


@pytest.mark.parametrize(
    "environ",
    [
        {"TERMFLOW_BATCH_SIZE": "ten"},
        {"TERMFLOW_SMOOTH_SCROLLING": "maybe"},
        {"TERMFLOW_PAGE_SIZE": "0"},
    ],
)
def test_from_env_rejects_invalid_values(environ):
    with pytest.raises(ValueError):
        Config.from_env(environ)
