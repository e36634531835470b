"""Abandonment Prediction: risk that an in-progress checkout is dropped.

Additive rule-based model over five signals (time overrun, errors, funnel
step, time stuck on the step, progress through the step). Produces a
0-100 risk score, a tier, and recommendations derived from the signals.

Typical usage:
    typical = get_typical_checkout_duration(avg_checkout_time)
    factors = AbandonmentRiskFactors(time_exceeded=elapsed / typical, ...)
    prediction = predict_abandonment(factors)
"""

from dataclasses import asdict, dataclass, field
from typing import Literal

RiskLevel = Literal["low", "medium", "high", "critical"]

# ── Risk constants ────────────────────────────────────────────

# (ratio of typical checkout time, points), strictly greater-than
TIME_EXCEEDED_TIERS = [(1.5, 40), (1.0, 25), (0.5, 15)]

ERROR_RISK = {0: 0, 1: 10, 2: 20}
ERROR_RISK_SATURATED = 30         # 3+ errors

STEP_RISK = {
    "cart": 5,
    "profile": 10,
    "shipping": 15,
    "payment": 20,
}
UNKNOWN_STEP_RISK = 10

# (seconds on current step, points), strictly greater-than
STEP_DURATION_TIERS = [(300, 10), (180, 5)]

# (progress through step, points), strictly less-than
STEP_PROGRESS_TIERS = [(0.25, 10), (0.5, 5)]

RETURNED_DISCOUNT = 15

TYPICAL_DURATION_MARGIN = 1.2

RISK_THRESHOLDS: list[tuple[float, RiskLevel]] = [
    (70, "critical"),
    (50, "high"),
    (30, "medium"),
]

SLOW_STEP_SECONDS = 180


@dataclass(frozen=True)
class AbandonmentRiskFactors:
    """Signals for one in-progress checkout session."""
    time_exceeded: float           # elapsed / typical checkout duration
    error_count: int
    current_step: str
    step_duration: float           # seconds on the current step
    total_duration: float          # seconds since checkout start
    has_returned: bool
    step_progress: float           # 0-1
    device_type: str | None = None
    location: str | None = None


@dataclass(frozen=True)
class AbandonmentPrediction:
    risk_score: float
    risk_level: RiskLevel
    factors: AbandonmentRiskFactors
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def risk_level(score: float) -> RiskLevel:
    for threshold, level in RISK_THRESHOLDS:
        if score >= threshold:
            return level
    return "low"


def _time_risk(time_exceeded: float) -> int:
    for ratio, points in TIME_EXCEEDED_TIERS:
        if time_exceeded > ratio:
            return points
    return 0


def _error_risk(error_count: int) -> int:
    if error_count >= 3:
        return ERROR_RISK_SATURATED
    return ERROR_RISK.get(error_count, 0)


def _step_duration_risk(step_duration: float) -> int:
    for seconds, points in STEP_DURATION_TIERS:
        if step_duration > seconds:
            return points
    return 0


def _progress_risk(step_progress: float) -> int:
    for progress, points in STEP_PROGRESS_TIERS:
        if step_progress < progress:
            return points
    return 0


def predict_abandonment(factors: AbandonmentRiskFactors) -> AbandonmentPrediction:
    """Score abandonment risk for a single session.

    Args:
        factors: Session signals; the caller derives ``time_exceeded``
            from ``get_typical_checkout_duration``.

    Returns:
        AbandonmentPrediction with score clamped to [0, 100].
    """
    score = (
        _time_risk(factors.time_exceeded)
        + _error_risk(factors.error_count)
        + STEP_RISK.get(factors.current_step, UNKNOWN_STEP_RISK)
        + _step_duration_risk(factors.step_duration)
        + _progress_risk(factors.step_progress)
    )

    if factors.has_returned:
        score = max(0, score - RETURNED_DISCOUNT)

    score = float(max(0, min(100, score)))
    level = risk_level(score)

    return AbandonmentPrediction(
        risk_score=score,
        risk_level=level,
        factors=factors,
        recommendations=generate_recommendations(level, factors),
    )


def generate_recommendations(level: RiskLevel, factors: AbandonmentRiskFactors) -> list[str]:
    """Fixed rule set; each rule that fires appends its pair in order."""
    recommendations: list[str] = []

    if level in ("critical", "high"):
        recommendations.append("Consider offering a discount or incentive")
        recommendations.append("Send recovery email if user abandons")

    if factors.error_count > 0:
        recommendations.append("Improve error handling and user feedback")
        recommendations.append("Simplify checkout process")

    if factors.time_exceeded > 1.0:
        recommendations.append("Optimize checkout flow to reduce time")
        recommendations.append("Consider auto-fill options for faster checkout")

    if factors.current_step == "payment":
        recommendations.append("Offer multiple payment options")
        recommendations.append("Show security badges and trust indicators")

    if factors.step_duration > SLOW_STEP_SECONDS:
        recommendations.append("Add progress indicators to show completion")
        recommendations.append("Provide clear next steps guidance")

    return recommendations


def get_typical_checkout_duration(avg_checkout_time: float) -> float:
    """Threshold for a "typical" checkout: average time plus a 20% margin."""
    return avg_checkout_time * TYPICAL_DURATION_MARGIN
