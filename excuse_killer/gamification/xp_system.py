"""
XP System

XP is earned per completed challenge and depends only on its intensity:
- chill: 30 XP
- normal: 50 XP
- hardcore: 75 XP

Intensity also sets the default timer duration (10 / 20 / 30 minutes).
"""

from typing import Iterable, Optional
import logging

from excuse_killer.models.completion import Completion

logger = logging.getLogger(__name__)

XP_VALUES: dict[str, int] = {
    "chill": 30,
    "normal": 50,
    "hardcore": 75,
}

# Minutes
TIMER_DURATIONS: dict[str, int] = {
    "chill": 10,
    "normal": 20,
    "hardcore": 30,
}

DEFAULT_TIMER_DURATION = 20


def _intensity_key(intensity) -> Optional[str]:
    return getattr(intensity, "value", intensity)


def calculate_xp(intensity) -> int:
    """XP for a completed challenge of the given intensity (0 if unknown)"""
    return XP_VALUES.get(_intensity_key(intensity), 0)


def get_timer_duration(intensity) -> int:
    """Default timer duration in minutes for an intensity"""
    return TIMER_DURATIONS.get(_intensity_key(intensity), DEFAULT_TIMER_DURATION)


def calculate_total_xp(completions: Iterable[Completion]) -> int:
    """Sum of XP across all completions"""
    if not completions:
        return 0
    return sum(c.xp_earned or 0 for c in completions)
