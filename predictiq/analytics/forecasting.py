"""
Demand Forecasting Module

Daily unit-sales forecasting over the date-grouped series:
- Trailing moving average (diagnostic series)
- Exponential smoothing forecast over a fixed horizon
- In-sample fit metrics and a correlation ranking of sales drivers

The smoothing recurrence anchors every step to the last observed value
(s_t = alpha * last + (1 - alpha) * s_{t-1}) instead of walking forward from
the previous forecast point. With s_0 = last this yields a flat forecast at
the last observation. It is kept as-is pending product-owner confirmation.
"""

from datetime import date, timedelta
import math
from typing import Dict, List, Optional, Sequence

import numpy as np
import polars as pl
import structlog

from predictiq.errors import ConfigurationError, require_observations
from predictiq.models import (
    DailyAggregate,
    DriverImportance,
    ForecastPoint,
    ForecastResult,
    TransactionRecord,
)
from predictiq.transformation.aggregations import records_to_frame

logger = structlog.get_logger(__name__)

MIN_OBSERVED_DAYS = 2

# Record fields ranked against units sold
DRIVER_FEATURES = ["unit_price", "promotion_active", "stock_level", "competitor_price"]


def moving_average(values: Sequence[float], window: int) -> List[Optional[float]]:
    """
    Trailing arithmetic mean over ``window`` observations.

    Index ``i`` is None until ``i >= window - 1``.
    """
    if window <= 0:
        raise ConfigurationError("movingAverageWindow must be a positive number of days.")
    if len(values) < window:
        return [None] * len(values)

    series = pl.Series("values", list(values), dtype=pl.Float64)
    return series.rolling_mean(window_size=window).to_list()


def exponential_smoothing(values: Sequence[float], alpha: float, horizon: int) -> List[float]:
    """
    Flat-anchor exponential smoothing forecast.

    Each step pulls toward the last observed value. Forecasts are floored at
    zero and rounded half-up to whole units.
    """
    if not 0 < alpha <= 1:
        raise ConfigurationError("smoothingAlpha must be in the range (0, 1].")
    if horizon <= 0:
        raise ConfigurationError("forecastHorizonDays must be a positive number of days.")
    if not values:
        return []

    anchor = float(values[-1])
    level = anchor
    predictions = []

    for _ in range(horizon):
        level = alpha * anchor + (1 - alpha) * level
        predictions.append(float(max(0, math.floor(level + 0.5))))

    return predictions


def fit_metrics(
    actuals: Sequence[float],
    fitted: Sequence[Optional[float]],
) -> Optional[Dict[str, Optional[float]]]:
    """
    In-sample error of a fitted series over the points where it is defined.

    Returns mae, mse, rmse and r2; r2 is None when the actuals have no
    spread. None when no fitted point is defined.
    """
    pairs = [(a, f) for a, f in zip(actuals, fitted) if f is not None]
    if not pairs:
        return None

    observed = np.array([a for a, _ in pairs], dtype=float)
    residuals = observed - np.array([f for _, f in pairs], dtype=float)
    mse = float(np.mean(residuals ** 2))
    total = float(np.sum((observed - observed.mean()) ** 2))

    return {
        "mae": float(np.mean(np.abs(residuals))),
        "mse": mse,
        "rmse": math.sqrt(mse),
        "r2": 1 - float(np.sum(residuals ** 2)) / total if total > 0 else None,
    }


def driver_importance(records: Sequence[TransactionRecord]) -> List[DriverImportance]:
    """
    Rank record fields by the strength of their linear relationship with
    units sold (absolute Pearson correlation).

    Fields with fewer than two observations or without variance are left out.
    """
    if not records:
        return []

    frame = records_to_frame(records).select(
        pl.col("units_sold").cast(pl.Float64),
        *[pl.col(name).cast(pl.Float64) for name in DRIVER_FEATURES],
    )

    drivers = []
    for feature in DRIVER_FEATURES:
        pairs = frame.select(feature, "units_sold").drop_nulls()
        if pairs.height < 2:
            continue
        correlation = pairs.select(pl.corr(feature, "units_sold")).item()
        if correlation is None or not math.isfinite(correlation):
            continue
        drivers.append(DriverImportance(
            feature=feature,
            correlation=correlation,
            importance=abs(correlation),
        ))

    return sorted(drivers, key=lambda d: (-d.importance, d.feature))


class DemandForecaster:
    """
    Forecasts total daily units.

    Example:
        forecaster = DemandForecaster(window=7, alpha=0.2, horizon=30)
        result = forecaster.forecast(aggregates.daily, aggregates.records)
    """

    def __init__(self, window: int = 7, alpha: float = 0.2, horizon: int = 30):
        self.window = window
        self.alpha = alpha
        self.horizon = horizon

    def forecast(
        self,
        daily: Sequence[DailyAggregate],
        records: Sequence[TransactionRecord] = (),
    ) -> ForecastResult:
        """
        Build the historical diagnostic series and the horizon forecast.

        The moving average is scored against the actuals it smooths; when
        records are given their fields are ranked as sales drivers.

        Raises:
            InsufficientData: with fewer than two observed days
        """
        require_observations(len(daily), MIN_OBSERVED_DAYS, "daily sales observations")

        dates: List[date] = [day.date for day in daily]
        actuals = [float(day.total_units) for day in daily]

        averages = moving_average(actuals, self.window)
        predictions = exponential_smoothing(actuals, self.alpha, self.horizon)

        historical = [
            ForecastPoint(date=d, actual_value=value, moving_average=avg)
            for d, value, avg in zip(dates, actuals, averages)
        ]

        last_date = dates[-1]
        forecast = [
            ForecastPoint(date=last_date + timedelta(days=step), predicted_value=value)
            for step, value in enumerate(predictions, start=1)
        ]

        metrics = fit_metrics(actuals, averages) or {}
        drivers = driver_importance(records)

        logger.info(
            "Forecast complete",
            observed_days=len(dates),
            horizon=self.horizon,
            window_filled=len(dates) >= self.window,
            top_driver=drivers[0].feature if drivers else None,
        )

        return ForecastResult(historical=historical, forecast=forecast, drivers=drivers, **metrics)
