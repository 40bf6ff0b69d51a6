"""Wizard stage bounds and advance results.

Pure domain logic with no external dependencies.
"""
from dataclasses import dataclass

from vision_builder.core.exceptions import InvalidStageError
from vision_builder.domain.questions import TOTAL_QUESTIONS

FIRST_STAGE = 1
FINAL_STAGE = TOTAL_QUESTIONS


@dataclass(frozen=True)
class Continue:
    """Advance moved the session to ``stage``."""

    stage: int


@dataclass(frozen=True)
class Complete:
    """Advance was requested from the final stage; data entry is done."""

    stage: int = FINAL_STAGE


AdvanceResult = Continue | Complete


def validate_stage(stage: int) -> int:
    """Return stage unchanged if 1 <= stage <= 10.

    Out-of-range values are rejected, never clamped.
    """
    if not isinstance(stage, int) or isinstance(stage, bool):
        raise InvalidStageError(stage)
    if not FIRST_STAGE <= stage <= FINAL_STAGE:
        raise InvalidStageError(stage)
    return stage


def next_stage(current: int) -> AdvanceResult:
    """Compute the result of an explicit "next" from ``current``.

    Pure function -- no side effects, no DB access.
    """
    validate_stage(current)
    if current < FINAL_STAGE:
        return Continue(current + 1)
    return Complete()


def previous_stage(current: int) -> int:
    """Stage reached by "previous"; stays at the first stage."""
    validate_stage(current)
    return max(current - 1, FIRST_STAGE)
