import logging
import math

import pandas as pd
import pytest

from backend.analysis.forecasting import (
    ForecastAccuracy, ForecastDataPoint, ForecastModel, ForecastResult, calculate_forecast_accuracy,
    calculate_seasonality, classify_trend, generate_forecast, load_daily_revenue, plot_forecast,
    weekday_index,
)
from backend.analysis.stats import exponential_moving_average, linear_regression


def series(revenues, start="2024-01-01"):
    dates = pd.date_range(start, periods=len(revenues), freq="D")
    return [ForecastDataPoint(date=d.strftime("%Y-%m-%d"), revenue=float(r))
            for d, r in zip(dates, revenues)]


def result(date, forecast):
    return ForecastResult(date=date, forecast=forecast, lower_bound=0.0,
                          upper_bound=forecast, confidence=0.9)


GROWING = [100 + 5 * i + (i % 3) * 2 for i in range(30)]


class TestGenerateForecast:
    def test_short_history_gives_empty_model(self):
        model = generate_forecast(series([100] * 6), days=10)
        assert model == ForecastModel()
        assert model.forecasts == []
        assert model.trend == "stable"
        assert model.avg_growth == 0

    def test_horizon_length_and_dates(self):
        model = generate_forecast(series([100] * 7), days=3)
        assert [f.date for f in model.forecasts] == ["2024-01-08", "2024-01-09", "2024-01-10"]

    def test_zero_days(self):
        assert generate_forecast(series(GROWING), days=0).forecasts == []

    def test_interval_widens_with_horizon(self):
        model = generate_forecast(series(GROWING), days=20)
        half_widths = [f.upper_bound - f.forecast for f in model.forecasts]
        assert all(b > a for a, b in zip(half_widths, half_widths[1:]))

    def test_full_band_widens_while_lower_bound_unclamped(self):
        # only holds unclamped: once lower_bound hits 0 on a falling forecast the width can shrink
        model = generate_forecast(series(GROWING), days=20)
        assert all(f.lower_bound > 0 for f in model.forecasts)
        widths = [f.upper_bound - f.lower_bound for f in model.forecasts]
        assert all(b > a for a, b in zip(widths, widths[1:]))

    def test_bounds_bracket_forecast(self):
        model = generate_forecast(series(GROWING), days=20)
        for f in model.forecasts:
            assert 0 <= f.lower_bound <= f.forecast <= f.upper_bound

    def test_confidence_decays_within_limits(self):
        model = generate_forecast(series(GROWING), days=30)
        confidences = [f.confidence for f in model.forecasts]
        assert confidences == sorted(confidences, reverse=True)
        assert confidences[0] == pytest.approx(0.9 - 0.4 / 30)
        assert confidences[-1] == pytest.approx(0.5)
        assert all(0.3 <= c <= 0.9 for c in confidences)

    def test_increasing_trend(self):
        model = generate_forecast(series(GROWING), days=7)
        assert model.trend == "increasing"
        assert model.avg_growth == pytest.approx(5, abs=0.5)

    def test_decreasing_trend(self):
        model = generate_forecast(series([200 - 5 * i for i in range(30)]), days=7)
        assert model.trend == "decreasing"
        assert model.avg_growth == pytest.approx(-5)

    def test_constant_series(self):
        model = generate_forecast(series([100] * 14), days=7)
        assert model.trend == "stable"
        assert model.avg_growth == pytest.approx(0)
        for f in model.forecasts:
            assert f.forecast == pytest.approx(100)
            # zero variance collapses the band
            assert f.lower_bound == pytest.approx(100)
            assert f.upper_bound == pytest.approx(100)

    def test_zero_revenue_weekday_projects_at_base_level(self):
        # 2024-01-07 and 2024-01-14 are Sundays with no revenue
        revenues = [0 if day in (6, 13) else 100 for day in range(14)]
        data = series(revenues)
        model = generate_forecast(data, days=7)

        assert model.seasonality.weekly[0] == 0
        sunday = model.forecasts[-1]
        assert sunday.date == "2024-01-21"
        fit = linear_regression(revenues)
        base = exponential_moving_average(revenues, alpha=0.3) + fit.slope * 7
        assert sunday.forecast == pytest.approx(base)

    def test_lower_bound_never_negative(self):
        model = generate_forecast(series([0, 500, 0, 500, 0, 500, 0, 20, 0, 10]), days=14)
        assert all(f.lower_bound >= 0 for f in model.forecasts)

    def test_unordered_input_is_logged_not_sorted(self, caplog):
        points = list(reversed(series(GROWING[:10])))
        with caplog.at_level(logging.WARNING, logger="backend.analysis.forecasting"):
            model = generate_forecast(points, days=2)
        assert "chronological" in caplog.text
        # forecast starts after the last element, not the latest date
        assert model.forecasts[0].date == "2024-01-02"


class TestSeasonality:
    def test_sunday_is_weekday_zero(self):
        # 2024-01-01 is a Monday, 2024-01-07 a Sunday
        data = series([100, 100, 100, 100, 100, 100, 200])
        seasonality = calculate_seasonality(data)
        assert seasonality.weekly[0] == pytest.approx(1.75)
        assert seasonality.weekly[1] == pytest.approx(0.875)
        assert seasonality.monthly == {0: pytest.approx(1.0)}

    def test_only_observed_buckets(self):
        seasonality = calculate_seasonality(series([10, 20, 30]))
        assert set(seasonality.weekly) == {1, 2, 3}
        assert set(seasonality.monthly) == {0}

    def test_count_weighted_mean_is_one(self):
        data = series(GROWING)
        seasonality = calculate_seasonality(data)
        weights = pd.Series([weekday_index(pd.Timestamp(p.date)) for p in data]).value_counts()
        weighted = sum(seasonality.weekly[k] * n for k, n in weights.items()) / len(data)
        assert weighted == pytest.approx(1.0)

    def test_empty_and_all_zero(self):
        assert calculate_seasonality([]).weekly == {}
        zero = calculate_seasonality(series([0] * 10))
        assert zero.weekly == {}
        assert zero.monthly == {}

    def test_weekday_index(self):
        assert weekday_index(pd.Timestamp("2024-01-07")) == 0
        assert weekday_index(pd.Timestamp("2024-01-06")) == 6


class TestClassifyTrend:
    @pytest.mark.parametrize("slope,last,trend", [
        (1.1, 100, "increasing"), (1.0, 100, "stable"), (-1.0, 100, "stable"),
        (-1.1, 100, "decreasing"), (0.0, 0, "stable"), (0.5, 0, "increasing"),
    ])
    def test_threshold_is_one_percent_of_last_value(self, slope, last, trend):
        assert classify_trend(slope, last) == trend


class TestForecastAccuracy:
    def test_metrics_on_matched_dates(self):
        forecasts = [result("2024-01-01", 100), result("2024-01-02", 50), result("2024-01-03", 10)]
        actuals = [ForecastDataPoint("2024-01-01", 110), ForecastDataPoint("2024-01-02", 0)]

        accuracy = calculate_forecast_accuracy(forecasts, actuals)

        assert accuracy.mae == pytest.approx(30)
        assert accuracy.rmse == pytest.approx(math.sqrt(1300))
        # zero actual is left out of MAPE
        assert accuracy.mape == pytest.approx(10 / 110 * 100)

    def test_perfect_forecast(self):
        forecasts = [result("2024-01-01", 100), result("2024-01-02", 80)]
        actuals = [ForecastDataPoint("2024-01-01", 100), ForecastDataPoint("2024-01-02", 80)]
        assert calculate_forecast_accuracy(forecasts, actuals) == ForecastAccuracy(0.0, 0.0, 0.0)

    def test_no_overlap(self):
        accuracy = calculate_forecast_accuracy([result("2024-01-01", 100)],
                                               [ForecastDataPoint("2024-02-01", 100)])
        assert accuracy == ForecastAccuracy()

    def test_all_zero_actuals_give_zero_mape(self):
        accuracy = calculate_forecast_accuracy([result("2024-01-01", 40)],
                                               [ForecastDataPoint("2024-01-01", 0)])
        assert accuracy.mae == pytest.approx(40)
        assert accuracy.mape == 0.0

    def test_first_actual_wins_on_duplicate_dates(self):
        accuracy = calculate_forecast_accuracy(
            [result("2024-01-01", 100)],
            [ForecastDataPoint("2024-01-01", 100), ForecastDataPoint("2024-01-01", 500)],
        )
        assert accuracy.mae == 0.0


class TestFileIO:
    def test_load_daily_revenue(self, tmp_path):
        path = tmp_path / "daily.csv"
        path.write_text("date,revenue\n2024-01-01,100\n2024-01-02,oops\n2024-01-03,-5\n")

        points = load_daily_revenue(path)

        assert points == [
            ForecastDataPoint("2024-01-01", 100.0),
            ForecastDataPoint("2024-01-02", 0.0),
            ForecastDataPoint("2024-01-03", 0.0),
        ]

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_daily_revenue(tmp_path / "absent.csv")

    def test_load_missing_columns(self, tmp_path):
        path = tmp_path / "daily.csv"
        path.write_text("day,amount\n2024-01-01,100\n")
        with pytest.raises(ValueError, match="Missing expected columns"):
            load_daily_revenue(path)

    def test_plot_forecast_writes_png(self, tmp_path):
        historical = series(GROWING)
        output = plot_forecast(historical, generate_forecast(historical, days=7), tmp_path)
        assert output == tmp_path / "forecast.png"
        assert output.stat().st_size > 0
