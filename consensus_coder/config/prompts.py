"""
Packaged default prompts.

Prompts live in prompts.yaml next to this module, grouped by section
(``consensus``, ``enrichment``). Keys are addressed as ``section.name``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import structlog
import yaml

from .settings import settings

logger = structlog.get_logger()

WORKER_DEFAULT = "consensus.worker_default"
WORKER_RIGOROUS = "consensus.worker_rigorous"
JUDGE_DEFAULT = "consensus.judge_default"
JUDGE_ENHANCED = "consensus.judge_enhanced"
QUALITY_SCORING = "enrichment.quality_scoring"
DISAGREEMENT_ANALYSIS = "enrichment.disagreement_analysis"

# Preset name -> prompt key, selected by settings
WORKER_PRESETS = {"default": WORKER_DEFAULT, "rigorous": WORKER_RIGOROUS}
JUDGE_PRESETS = {"default": JUDGE_DEFAULT, "enhanced": JUDGE_ENHANCED}


def load_prompts(path: Path | None = None) -> dict[str, Any]:
    """Load prompts from YAML configuration."""
    path = path or settings.prompts_yaml_path
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("failed_to_load_prompts", path=str(path), error=str(e))
        return {}


@lru_cache
def _default_prompts() -> dict[str, Any]:
    return load_prompts()


def get_prompt(key: str) -> str:
    """
    Look up a packaged prompt by dotted key.

    Args:
        key: ``section.name`` key, e.g. ``consensus.judge_default``

    Returns:
        The prompt text, or an empty string if the key is unknown
    """
    section, _, name = key.partition(".")
    value = _default_prompts().get(section, {}).get(name)
    if value is None:
        logger.warning("unknown_prompt_key", key=key)
        return ""
    return value.strip()


def resolve_prompt(custom: str | None, key: str) -> str:
    """Return ``custom`` when it has content, otherwise the packaged default."""
    if custom and custom.strip():
        return custom
    return get_prompt(key)
