import pytest

from backend.analysis.abandonment import (
    AbandonmentRiskFactors, get_typical_checkout_duration, predict_abandonment, risk_level,
)


def factors(**overrides):
    base = dict(
        time_exceeded=0.0, error_count=0, current_step="cart", step_duration=0,
        total_duration=0, has_returned=False, step_progress=1.0,
    )
    base.update(overrides)
    return AbandonmentRiskFactors(**base)


PAYMENT_TIMEOUT = dict(
    time_exceeded=2.0, error_count=3, current_step="payment",
    step_duration=400, total_duration=900, has_returned=False, step_progress=0.9,
)


class TestPredictAbandonment:
    def test_payment_step_timeout(self):
        prediction = predict_abandonment(AbandonmentRiskFactors(**PAYMENT_TIMEOUT))
        assert prediction.risk_score == 100
        assert prediction.risk_level == "critical"
        assert "Consider offering a discount or incentive" in prediction.recommendations
        assert "Show security badges and trust indicators" in prediction.recommendations

    def test_returning_user_reduces_risk(self):
        prediction = predict_abandonment(
            AbandonmentRiskFactors(**{**PAYMENT_TIMEOUT, "has_returned": True})
        )
        assert prediction.risk_score == 85
        assert prediction.risk_level == "critical"

    def test_calm_cart_session(self):
        prediction = predict_abandonment(factors())
        assert prediction.risk_score == 5
        assert prediction.risk_level == "low"
        assert prediction.recommendations == []

    def test_returned_discount_floors_at_zero(self):
        prediction = predict_abandonment(factors(has_returned=True))
        assert prediction.risk_score == 0

    @pytest.mark.parametrize("ratio,points", [
        (0.5, 0), (0.51, 15), (1.0, 15), (1.01, 25), (1.5, 25), (1.51, 40),
    ])
    def test_time_tiers_are_strict(self, ratio, points):
        assert predict_abandonment(factors(time_exceeded=ratio)).risk_score == 5 + points

    @pytest.mark.parametrize("errors,points", [(0, 0), (1, 10), (2, 20), (3, 30), (50, 30)])
    def test_error_tiers(self, errors, points):
        assert predict_abandonment(factors(error_count=errors)).risk_score == 5 + points

    @pytest.mark.parametrize("step,points", [
        ("cart", 5), ("profile", 10), ("shipping", 15), ("payment", 20), ("review", 10),
    ])
    def test_step_risk(self, step, points):
        assert predict_abandonment(factors(current_step=step)).risk_score == points

    @pytest.mark.parametrize("seconds,points", [(180, 0), (181, 5), (300, 5), (301, 10)])
    def test_step_duration_tiers(self, seconds, points):
        assert predict_abandonment(factors(step_duration=seconds)).risk_score == 5 + points

    @pytest.mark.parametrize("progress,points", [(0.0, 10), (0.24, 10), (0.25, 5), (0.49, 5), (0.5, 0)])
    def test_progress_tiers(self, progress, points):
        assert predict_abandonment(factors(step_progress=progress)).risk_score == 5 + points

    def test_monotonic_in_error_count(self):
        scores = [predict_abandonment(factors(error_count=n, time_exceeded=1.2)).risk_score
                  for n in range(6)]
        assert scores == sorted(scores)

    def test_score_always_in_range(self):
        prediction = predict_abandonment(factors(
            time_exceeded=99, error_count=1000, current_step="payment",
            step_duration=10_000, step_progress=0,
        ))
        assert 0 <= prediction.risk_score <= 100

    def test_recommendation_order_is_fixed(self):
        prediction = predict_abandonment(AbandonmentRiskFactors(**PAYMENT_TIMEOUT))
        assert prediction.recommendations == [
            "Consider offering a discount or incentive",
            "Send recovery email if user abandons",
            "Improve error handling and user feedback",
            "Simplify checkout process",
            "Optimize checkout flow to reduce time",
            "Consider auto-fill options for faster checkout",
            "Offer multiple payment options",
            "Show security badges and trust indicators",
            "Add progress indicators to show completion",
            "Provide clear next steps guidance",
        ]

    def test_recommendations_only_for_triggered_rules(self):
        prediction = predict_abandonment(factors(error_count=1, step_duration=200))
        assert prediction.risk_level == "low"
        assert prediction.recommendations == [
            "Improve error handling and user feedback",
            "Simplify checkout process",
            "Add progress indicators to show completion",
            "Provide clear next steps guidance",
        ]

    def test_optional_context_is_echoed(self):
        f = factors(device_type="mobile", location="BR")
        data = predict_abandonment(f).to_dict()
        assert data["factors"]["device_type"] == "mobile"
        assert data["factors"]["location"] == "BR"


class TestRiskLevel:
    @pytest.mark.parametrize("score,level", [
        (29.999, "low"), (30, "medium"), (50, "high"), (69.999, "high"), (70, "critical"),
    ])
    def test_boundaries(self, score, level):
        assert risk_level(score) == level


def test_typical_checkout_duration_adds_margin():
    assert get_typical_checkout_duration(300) == pytest.approx(360)
    assert get_typical_checkout_duration(0) == 0
