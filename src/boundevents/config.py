"""
Engine-wide settings.

A single module-level EngineConfig instance holds the knobs shared by every
channel. Tests and applications replace it wholesale; instances are frozen so
a channel never observes a half-applied change.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Settings read by channels at dispatch time."""
    debounce_seconds: float = 0.02  # raise_once coalescing window
    default_priority: int = 100  # order for handlers without an explicit priority


_current_config = EngineConfig()


def get_config() -> EngineConfig:
    """Return the active engine configuration."""
    return _current_config


def configure(**overrides: Any) -> EngineConfig:
    """Replace selected fields of the active configuration.

    Args:
        **overrides: EngineConfig field names and their new values

    Returns:
        The new active configuration
    """
    global _current_config
    _current_config = dataclasses.replace(_current_config, **overrides)
    logger.debug(f"Engine configuration updated: {_current_config}")
    return _current_config


def reset_config() -> EngineConfig:
    """Restore the default configuration."""
    global _current_config
    _current_config = EngineConfig()
    return _current_config
