"""
Expected exam score from FIPI task mastery.

expected = 0.3 * naive + 0.7 * calibrated, where

    naive      = sum(p_i * w_i)
    calibrated = sum(q_i * w_i),  q_i = g + (1 - g) * sigmoid(a * (p_i - b))

with a=5, b=0.6, g=0.25 and w_i the point value of the i-th FIPI task of the
course. Course "3" (EGE profile) is then mapped from primary points to the
0-100 test scale through a piecewise-linear table.
"""

import bisect
import logging
import math
from collections.abc import Sequence

from app.schemas.mastery import FipiTaskProbability

logger = logging.getLogger(__name__)

LOGISTIC_SLOPE = 5.0
LOGISTIC_MIDPOINT = 0.6
GUESS_FLOOR = 0.25

NAIVE_WEIGHT = 0.3
CALIBRATED_WEIGHT = 0.7

# Point value per 1-based task number; tasks not listed are worth 0.
COURSE_POINT_WEIGHTS: dict[str, dict[int, float]] = {
    # OGE: task 1 stands for the 1-5 practical block (5 pts), 6-19 -> 1, 20-25 -> 2
    "1": {1: 5, **{n: 1 for n in range(6, 20)}, **{n: 2 for n in range(20, 26)}},
    # EGE basic: 1-21 -> 1
    "2": {n: 1 for n in range(1, 22)},
    # EGE profile: 1-12 -> 1, then the extended-answer tasks
    "3": {
        **{n: 1 for n in range(1, 13)},
        13: 2,
        14: 3,
        15: 2,
        16: 2,
        17: 3,
        18: 4,
        19: 4,
    },
}

# (primary points, test score), ascending in both columns.
PROFILE_SCALE_TABLE: tuple[tuple[float, float], ...] = (
    (1, 6),
    (2, 11),
    (3, 17),
    (4, 22),
    (5, 27),
    (6, 34),
    (7, 40),
    (8, 46),
    (9, 52),
    (10, 58),
    (11, 64),
    (12, 70),
    (13, 72),
    (14, 74),
    (15, 76),
    (16, 78),
    (17, 80),
    (18, 82),
    (19, 84),
    (20, 86),
    (21, 88),
    (22, 90),
    (23, 92),
    (24, 94),
    (25, 95),
    (26, 96),
    (27, 97),
    (28, 98),
    (29, 99),
    (30, 100),
    (31, 100),
    (32, 100),
)

RESCALED_COURSES = {"3"}


def sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def calibrate(p: float) -> float:
    return GUESS_FLOOR + (1.0 - GUESS_FLOOR) * sigmoid(LOGISTIC_SLOPE * (p - LOGISTIC_MIDPOINT))


def course_weights(course_id: str, count: int) -> list[float]:
    """Point values for the first ``count`` FIPI tasks of a course."""
    if course_id not in COURSE_POINT_WEIGHTS:
        raise ValueError(f"No scoring rules for course {course_id!r}")
    points = COURSE_POINT_WEIGHTS[course_id]
    return [float(points.get(i + 1, 0)) for i in range(count)]


def raw_expected_points(probs: Sequence[float], weights: Sequence[float]) -> float:
    if len(probs) != len(weights):
        raise ValueError("probs and weights must have the same length")
    naive = sum(p * w for p, w in zip(probs, weights))
    calibrated = sum(calibrate(p) * w for p, w in zip(probs, weights))
    return NAIVE_WEIGHT * naive + CALIBRATED_WEIGHT * calibrated


def rescale_to_test_score(
    raw_points: float,
    table: Sequence[tuple[float, float]] = PROFILE_SCALE_TABLE,
) -> float:
    """
    Piecewise-linear interpolation over ``table``. Clamps to the first/last
    scaled value outside the table range.
    """
    xs = [x for x, _ in table]
    if raw_points < xs[0]:
        return float(table[0][1])
    if raw_points > xs[-1]:
        return float(table[-1][1])

    hi = bisect.bisect_left(xs, raw_points)
    x2, y2 = table[hi]
    if x2 == raw_points:
        return float(y2)
    x1, y1 = table[hi - 1]
    t = (raw_points - x1) / (x2 - x1)
    return round(y1 + t * (y2 - y1), 2)


def fipi_probabilities(entries) -> list[float]:
    """FIPI task probabilities in table order; other kinds are skipped."""
    return [entry.prob or 0.0 for entry in entries if isinstance(entry, FipiTaskProbability)]


def estimate_score(probs: Sequence[float], course_id: str) -> float | None:
    """
    Expected score for already-extracted FIPI probabilities. Returns None when
    there are none: absence of data is not a score of 0.
    """
    if not probs:
        return None
    weights = course_weights(course_id, len(probs))
    raw_expected = raw_expected_points(probs, weights)
    if course_id in RESCALED_COURSES:
        return rescale_to_test_score(raw_expected)
    return round(raw_expected, 2)


def estimate_expected_score(entries, course_id: str) -> float | None:
    """Best-effort wrapper used by the pipeline; failures yield None."""
    try:
        return estimate_score(fipi_probabilities(entries), str(course_id))
    except Exception:  # noqa: BLE001
        logger.exception("Error calculating expected score for course %s", course_id)
        return None
