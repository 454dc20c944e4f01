# ABOUTME: Helpers over weekly KPI samples: 12-week series, latest value, progress toward a target.
# ABOUTME: A config with no target (None or 0) is trend-only and has no progress percentage.

from typing import Any, Iterable

from core.config import CYCLE_WEEKS


def measurement_series(measurements: Iterable[Any], config_id: str) -> list[float | None]:
    """Values for weeks 1..12 (index 0 is week 1); None where nothing was logged."""
    series: list[float | None] = [None] * CYCLE_WEEKS
    for m in measurements:
        if m.config_id == config_id and 1 <= m.week_num <= CYCLE_WEEKS:
            series[m.week_num - 1] = m.value
    return series


def value_for_week(measurements: Iterable[Any], config_id: str, week_num: int) -> float | None:
    for m in measurements:
        if m.config_id == config_id and m.week_num == week_num:
            return m.value
    return None


def latest_value(measurements: Iterable[Any], config_id: str) -> float:
    """Value from the highest week logged for the config, 0 when nothing was logged."""
    logged = [m for m in measurements if m.config_id == config_id]
    if not logged:
        return 0.0
    return max(logged, key=lambda m: m.week_num).value


def has_target(config: Any) -> bool:
    return bool(config.target) and config.target > 0


def target_progress(config: Any, current: float) -> float | None:
    if not has_target(config):
        return None
    return current / config.target * 100
