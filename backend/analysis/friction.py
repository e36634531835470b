"""Friction Scoring: how much resistance a checkout session ran into.

Four weighted components add up to a 0-100 score:
- time in checkout      (0-40)
- errors encountered    (0-30)
- back navigations      (0-20)
- incomplete fields/steps (0-10)

A user who came back to checkout after leaving shows intent, so returning
sessions get a flat discount. Scores are pure functions of their inputs.
"""

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Literal

FrictionLevel = Literal["low", "medium", "high", "critical"]

# ── Scoring constants ─────────────────────────────────────────

MAX_CHECKOUT_SECONDS = 300        # 5 minutes or more = maximal time friction
TIME_WEIGHT = 40

ERROR_POINTS = 10
ERROR_CAP = 30

BACK_NAVIGATION_POINTS = 5
BACK_NAVIGATION_CAP = 20

COMPLETION_WEIGHT = 10

RETURNED_DISCOUNT = 10

LEVEL_THRESHOLDS: list[tuple[float, FrictionLevel]] = [
    (70, "critical"),
    (50, "high"),
    (30, "medium"),
]

LEVELS: tuple[FrictionLevel, ...] = ("low", "medium", "high", "critical")


@dataclass(frozen=True)
class FrictionFactors:
    """Behaviour observed in one checkout session."""
    total_duration: float          # seconds
    error_count: int
    back_navigations: int
    fields_filled: int
    total_fields: int
    steps_completed: int
    total_steps: int
    has_returned: bool


@dataclass(frozen=True)
class FrictionBreakdown:
    time_score: float = 0.0
    error_score: float = 0.0
    navigation_score: float = 0.0
    completion_score: float = 0.0


@dataclass(frozen=True)
class FrictionScore:
    score: float
    level: FrictionLevel
    factors: FrictionFactors
    breakdown: FrictionBreakdown

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class FrictionSummary:
    """Averages and level counts over many scored sessions."""
    avg_score: float = 0.0
    avg_breakdown: FrictionBreakdown = field(default_factory=FrictionBreakdown)
    distribution: dict[str, int] = field(default_factory=lambda: {level: 0 for level in LEVELS})

    def to_dict(self) -> dict:
        return asdict(self)


def friction_level(score: float) -> FrictionLevel:
    """Map a 0-100 score onto its tier. Lower bounds are inclusive."""
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return "low"


def _completion_ratio(done: int, total: int) -> float:
    # Nothing to complete counts as fully complete
    return done / total if total > 0 else 1.0


def calculate_friction_score(factors: FrictionFactors) -> FrictionScore:
    """Score one session.

    Args:
        factors: Session behaviour. Values are trusted as given; only the
            final score is clamped.

    Returns:
        FrictionScore with the per-component breakdown (pre-discount).
    """
    normalized_time = min(factors.total_duration / MAX_CHECKOUT_SECONDS, 1.0)
    time_score = max(normalized_time, 0.0) * TIME_WEIGHT

    error_score = min(factors.error_count * ERROR_POINTS, ERROR_CAP)
    navigation_score = min(factors.back_navigations * BACK_NAVIGATION_POINTS, BACK_NAVIGATION_CAP)

    fields_completion = _completion_ratio(factors.fields_filled, factors.total_fields)
    steps_completion = _completion_ratio(factors.steps_completed, factors.total_steps)
    avg_completion = (fields_completion + steps_completion) / 2
    completion_score = (1 - avg_completion) * COMPLETION_WEIGHT

    total = time_score + error_score + navigation_score + completion_score

    if factors.has_returned:
        total = max(0.0, total - RETURNED_DISCOUNT)

    total = float(max(0.0, min(100.0, total)))

    return FrictionScore(
        score=total,
        level=friction_level(total),
        factors=factors,
        breakdown=FrictionBreakdown(
            time_score=float(time_score),
            error_score=float(error_score),
            navigation_score=float(navigation_score),
            completion_score=float(completion_score),
        ),
    )


def calculate_average_friction(scores: Sequence[FrictionScore]) -> FrictionSummary:
    """Aggregate scored sessions. Empty input gives an all-zero summary."""
    if not scores:
        return FrictionSummary()

    n = len(scores)
    avg_breakdown = FrictionBreakdown(
        time_score=sum(s.breakdown.time_score for s in scores) / n,
        error_score=sum(s.breakdown.error_score for s in scores) / n,
        navigation_score=sum(s.breakdown.navigation_score for s in scores) / n,
        completion_score=sum(s.breakdown.completion_score for s in scores) / n,
    )

    distribution = {level: 0 for level in LEVELS}
    for s in scores:
        distribution[s.level] += 1

    return FrictionSummary(
        avg_score=sum(s.score for s in scores) / n,
        avg_breakdown=avg_breakdown,
        distribution=distribution,
    )
