"""Configuration for the output pipeline.

Every setting has a default; `Config.from_env()` applies TERMFLOW_* overrides.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class QueueConfig:
    """Output queue and rate limiter settings."""

    max_queue_size: int = 500
    min_render_interval_ms: int = 50  # 20 renders per second max
    batch_size: int = 10
    rate_limiting: bool = True
    max_outputs_per_second: int = 30
    smooth_scrolling: bool = True
    scroll_step: int = 5
    scroll_delay_ms: int = 16  # ~60fps
    max_consecutive_errors: int = 10

    def validate(self) -> None:
        _require_positive(self, "max_queue_size", "batch_size", "max_outputs_per_second", "scroll_step")
        _require_non_negative(self, "min_render_interval_ms", "scroll_delay_ms")
        _require_positive(self, "max_consecutive_errors")


@dataclass
class RendererConfig:
    """Progressive renderer settings."""

    chunk_size: int = 20
    chunk_delay_ms: int = 50
    enable_pagination: bool = True
    page_size: int = 100
    adaptive: bool = True
    show_progress: bool = True

    def validate(self) -> None:
        _require_positive(self, "chunk_size", "page_size")
        _require_non_negative(self, "chunk_delay_ms")


@dataclass
class Config:
    """Top-level configuration for an OutputContext."""

    queue: QueueConfig = field(default_factory=QueueConfig)
    renderer: RendererConfig = field(default_factory=RendererConfig)
    health_check_interval_ms: int = 30_000
    install_signal_handlers: bool = True
    auto_recover: bool = True

    def validate(self) -> None:
        self.queue.validate()
        self.renderer.validate()
        _require_non_negative(self, "health_check_interval_ms")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Config":
        """Build a config from defaults plus TERMFLOW_* environment overrides.

        Section settings use their plain name (TERMFLOW_BATCH_SIZE,
        TERMFLOW_CHUNK_DELAY_MS); booleans accept 1/0, true/false, yes/no, on/off.

        Raises:
            ValueError: If an override cannot be parsed or the result is invalid.
        """
        env = os.environ if environ is None else environ
        config = cls()
        for target in (config.queue, config.renderer, config):
            _apply_env(target, env)
        config.validate()
        return config


def _apply_env(target: object, env: Mapping[str, str]) -> None:
    for f in fields(target):  # type: ignore[arg-type]
        if f.type not in (int, bool, "int", "bool"):
            continue
        raw = env.get(f"TERMFLOW_{f.name.upper()}")
        if raw is None or raw == "":
            continue
        setattr(target, f.name, _parse(f.name, raw, f.type in (bool, "bool")))


def _parse(name: str, raw: str, is_bool: bool) -> int | bool:
    value = raw.strip().lower()
    if is_bool:
        if value in TRUE_VALUES:
            return True
        if value in FALSE_VALUES:
            return False
        raise ValueError(f"Invalid boolean for {name}: {raw!r}")
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {raw!r}") from None


def _require_positive(obj: object, *names: str) -> None:
    for name in names:
        if getattr(obj, name) <= 0:
            raise ValueError(f"{name} must be positive, got {getattr(obj, name)}")


def _require_non_negative(obj: object, *names: str) -> None:
    for name in names:
        if getattr(obj, name) < 0:
            raise ValueError(f"{name} must not be negative, got {getattr(obj, name)}")
