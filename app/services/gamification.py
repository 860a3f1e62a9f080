"""
gamification.py - XP, level, tier and streak arithmetic

Pure functions, no I/O:
- xp_for_attempt(...) / calculate_question_xp(...) - XP for a question attempt
- calculate_lecture_xp(...) - XP for a first lecture completion
- xp_to_reach_level(level) / level_for_xp(total_xp) / xp_to_next_level(total_xp)
- tier_for_xp(total_xp) / freeze_allowance(tier, total_xp)
- streak_with_freezes(calendar, freezes_allowed)
- round_half_up(value) - percentage and XP rounding (.5 always goes up)
"""

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Any, Mapping, Optional, Union

DIFFICULTIES = ("easy", "medium", "hard")
QUESTION_TYPES = ("quiz", "practice")


def round_half_up(value: float) -> int:
    """Round to the nearest int with .5 going up (12.5 -> 13), unlike round()."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class GamificationConfig:
    first_attempt_xp: Mapping[str, Mapping[str, int]] = field(default_factory=lambda: {
        "quiz": {"easy": 15, "medium": 25, "hard": 40},
        "practice": {"easy": 25, "medium": 40, "hard": 60},
    })
    second_attempt_multiplier: float = 0.4
    lecture_first_completion_xp: int = 50
    base_increment: int = 100


DEFAULT_CONFIG = GamificationConfig()


def _base_xp(difficulty: str, question_type: str, config: GamificationConfig) -> int:
    buckets = (
        config.first_attempt_xp.get(question_type)
        or config.first_attempt_xp.get("quiz")
        or config.first_attempt_xp.get("practice")
        or {}
    )
    return buckets.get(difficulty, buckets.get("medium", 0))


def xp_for_attempt(
    attempt_number: int,
    is_correct: bool,
    difficulty: str,
    question_type: str,
    config: GamificationConfig = DEFAULT_CONFIG,
) -> int:
    """XP for one attempt: full on the first, a fraction on the second, nothing after."""
    if not is_correct or attempt_number >= 3 or attempt_number < 1:
        return 0
    base = _base_xp(difficulty, question_type, config)
    if attempt_number == 1:
        return base
    return round_half_up(base * config.second_attempt_multiplier)


def calculate_question_xp(
    question_id: str,
    question_type: str,
    difficulty: str,
    is_correct: bool,
    previous: Optional[Dict[str, Any]] = None,
    config: GamificationConfig = DEFAULT_CONFIG,
) -> Dict[str, Any]:
    """Apply an attempt to a question's progress record.

    Returns {"xp_awarded", "progress"} where progress carries
    question_id, attempts_count, first_attempt_correct,
    second_attempt_correct and total_xp_earned.
    """
    prev = previous or {}
    attempt = int(prev.get("attempts_count") or 0) + 1
    xp = xp_for_attempt(attempt, is_correct, difficulty, question_type, config)

    progress = {
        "question_id": question_id,
        "attempts_count": attempt,
        "first_attempt_correct": bool(prev.get("first_attempt_correct")),
        "second_attempt_correct": bool(prev.get("second_attempt_correct")),
        "total_xp_earned": int(prev.get("total_xp_earned") or 0) + xp,
    }
    if is_correct and attempt == 1:
        progress["first_attempt_correct"] = True
    elif is_correct and attempt == 2:
        progress["second_attempt_correct"] = True

    return {"xp_awarded": xp, "progress": progress}


def calculate_lecture_xp(completed_before: bool = False, config: GamificationConfig = DEFAULT_CONFIG) -> int:
    if completed_before:
        return 0
    return config.lecture_first_completion_xp


def xp_to_reach_level(level: int, config: GamificationConfig = DEFAULT_CONFIG) -> int:
    """Triangular progression: total XP needed to reach `level`."""
    if level <= 1:
        return 0
    return round_half_up(config.base_increment * (level * (level + 1) / 2 - 1))


def level_for_xp(total_xp: int, config: GamificationConfig = DEFAULT_CONFIG) -> int:
    if total_xp <= 0:
        return 1
    if config.base_increment <= 0:
        return 1
    level = 1
    while total_xp >= xp_to_reach_level(level + 1, config):
        level += 1
    return level


def xp_to_next_level(total_xp: int, config: GamificationConfig = DEFAULT_CONFIG) -> Dict[str, int]:
    next_level = level_for_xp(total_xp, config) + 1
    needed = xp_to_reach_level(next_level, config)
    return {
        "next_level": next_level,
        "xp_for_next_level": needed,
        "xp_remaining": max(0, needed - total_xp),
    }


def level_progress_percent(total_xp: int, config: GamificationConfig = DEFAULT_CONFIG) -> int:
    """How far into the current level the user is, 0-100."""
    level = level_for_xp(total_xp, config)
    floor = xp_to_reach_level(level, config)
    window = max(1, xp_to_reach_level(level + 1, config) - floor)
    return min(100, max(0, round_half_up((total_xp - floor) / window * 100)))


def tier_for_xp(total_xp: int) -> str:
    if total_xp >= 25000:
        return "Platinum"
    if total_xp >= 15000:
        return "Gold"
    if total_xp >= 10000:
        return "Silver"
    return "Bronze"


def freeze_allowance(tier: Optional[str], total_xp: int) -> int:
    """Missed days a streak forgives: 2 from Silver upwards (or at 15k XP), else 1."""
    if (tier or "").lower() in ("silver", "gold", "platinum"):
        return 2
    if total_xp >= 15000:
        return 2
    return 1


def _as_date(value: Union[str, date]) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def streak_with_freezes(calendar: Mapping[Union[str, date], bool], freezes_allowed: int) -> int:
    """Length of the streak ending on the most recent present day.

    `calendar` maps days (date or YYYY-MM-DD) to presence. Walking backward
    from the last present day, each absent day spends one freeze and still
    counts; the walk ends at the earliest calendar day or at an absent day
    once freezes run out.
    """
    days = {_as_date(d): bool(present) for d, present in calendar.items()}
    present_days = [d for d, present in days.items() if present]
    if not present_days:
        return 0

    earliest = min(days)
    cursor = max(present_days)
    remaining = max(0, freezes_allowed or 0)
    streak = 0

    while cursor >= earliest:
        if days.get(cursor, False):
            streak += 1
        elif remaining > 0:
            remaining -= 1
            streak += 1
        else:
            break
        cursor -= timedelta(days=1)

    return streak

