"""Utility functions for score clamping, rescaling and blending."""

import math


def clamp_score(value: float | None) -> float:
    """Return the score, or 0.0 if it is missing or negative."""
    if value is None:
        return 0.0
    return max(0.0, float(value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3), unlike round()."""
    return int(math.floor(value + 0.5))


def calculate_exam_total(section_a: float, section_b: float, total_score: float | None = None) -> float:
    """
    Calculate the raw exam composite from the objective and theory sections.

    If both sections are 0 but a positive total was entered directly, the entered
    total is used instead.
    """
    exam_total = clamp_score(section_a) + clamp_score(section_b)
    entered_total = clamp_score(total_score)
    if exam_total == 0 and entered_total > 0:
        return entered_total
    return exam_total


def normalize_score(raw_score: float, max_raw_score: float) -> int:
    """
    Rescale a raw score to a score out of 100: round(raw / max * 100).

    Raises:
        ValueError: If max_raw_score is 0 or negative
    """
    if max_raw_score <= 0:
        raise ValueError(f"max_raw_score must be positive, got {max_raw_score}")
    return round_half_up(raw_score / max_raw_score * 100)


def blend_sba(exam_score: float, sba_score: float, sba_weight: float, exam_weight: float) -> float:
    """
    Blend an exam composite with an SBA score using percentage weights.

    blended = sba_score * sba_weight/100 + exam_score * exam_weight/100
    """
    return sba_score * (sba_weight / 100) + exam_score * (exam_weight / 100)
