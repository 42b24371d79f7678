"""Per-mode sprint generation policy."""

from __future__ import annotations

from dataclasses import dataclass

from sprintwise.core.models import GenerationMode


@dataclass(frozen=True)
class GenerationConfig:
    generate_on_completion: bool
    lookahead_days: int
    batch_size: int
    min_days_buffer: int


GENERATION_CONFIGS: dict[GenerationMode, GenerationConfig] = {
    GenerationMode.DAILY: GenerationConfig(
        generate_on_completion=True, lookahead_days=3, batch_size=3, min_days_buffer=1
    ),
    GenerationMode.WEEKLY: GenerationConfig(
        generate_on_completion=False, lookahead_days=7, batch_size=1, min_days_buffer=0
    ),
    GenerationMode.MILESTONE: GenerationConfig(
        generate_on_completion=False, lookahead_days=1, batch_size=1, min_days_buffer=0
    ),
    GenerationMode.MANUAL: GenerationConfig(
        generate_on_completion=False, lookahead_days=0, batch_size=1, min_days_buffer=0
    ),
}


def get_generation_config(mode: GenerationMode | str) -> GenerationConfig:
    """Policy for ``mode``; unknown modes get the DAILY policy."""
    try:
        return GENERATION_CONFIGS[GenerationMode(mode)]
    except ValueError:
        return GENERATION_CONFIGS[GenerationMode.DAILY]
