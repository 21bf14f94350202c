"""Settings, logging and packaged prompts."""

from .logging import configure_logging
from .prompts import get_prompt, load_prompts, resolve_prompt
from .settings import Settings, get_settings, settings

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "configure_logging",
    "load_prompts",
    "get_prompt",
    "resolve_prompt",
]
