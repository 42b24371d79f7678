"""
Sequencing Module - Day-numbered sprint generation.

Components:
- modes: Per generation-mode look-ahead and batch policy
- sequencer: Idempotent next-sprint, batch, review-sprint and buffer generation
"""

from sprintwise.sequencing.modes import GENERATION_CONFIGS, GenerationConfig, get_generation_config
from sprintwise.sequencing.sequencer import GenerationCheck, GenerationStatus, SprintSequencer

__all__ = [
    "GENERATION_CONFIGS",
    "GenerationConfig",
    "get_generation_config",
    "GenerationCheck",
    "GenerationStatus",
    "SprintSequencer",
]
