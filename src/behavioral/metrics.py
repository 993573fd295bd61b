"""
Running statistics for behavioral metrics.

Each profile keeps one BehavioralMetric per feature name. Updates fold a new
observation into the metric's baseline with an exponential moving average;
the standard deviation is not maintained online, so live anomaly scores stay
at zero until a baseline with a non-zero spread is supplied.
"""

import numpy as np

from .models import BehavioralMetric, BehavioralProfile, ProfileStatus

DEFAULT_ALPHA = 0.1
PERCENTILES = {"P10": 10, "P25": 25, "P50": 50, "P75": 75, "P90": 90}


def new_metric(name: str) -> BehavioralMetric:
    return BehavioralMetric(name=name)


def update_metric(metric: BehavioralMetric, new_value: float, alpha: float = DEFAULT_ALPHA) -> None:
    """Fold one observation into a metric"""
    metric.value = new_value
    metric.data_points += 1

    baseline = metric.baseline
    if metric.data_points == 1:
        baseline.min = new_value
        baseline.max = new_value
        baseline.mean = new_value
    else:
        baseline.min = min(baseline.min, new_value)
        baseline.max = max(baseline.max, new_value)
        baseline.mean = baseline.mean * (1 - alpha) + new_value * alpha

    if baseline.std_dev > 0:
        metric.anomaly_score = abs(new_value - baseline.mean) / baseline.std_dev


def freeze_baseline(profile: BehavioralProfile, metric_name: str, min_data_points: int) -> bool:
    """Snapshot a current metric into the profile's baseline while learning

    Returns:
        True if a snapshot was taken
    """
    metric = profile.current_metrics.get(metric_name)
    if metric is None:
        return False
    if profile.status != ProfileStatus.LEARNING or metric.data_points < min_data_points:
        return False

    profile.baseline_metrics[metric_name] = metric.snapshot()
    return True


def metric_from_value(name: str, value: float) -> BehavioralMetric:
    """Metric holding a single observation"""
    metric = new_metric(name)
    update_metric(metric, value)
    return metric


def metric_from_values(name: str, values: list[float]) -> BehavioralMetric:
    """Metric summarising a sample with population statistics"""
    metric = new_metric(name)
    if not values:
        return metric

    sample = np.asarray(values, dtype=float)
    mean = float(sample.mean())

    metric.value = mean
    metric.baseline.mean = mean
    metric.baseline.std_dev = float(sample.std())
    metric.baseline.min = float(sample.min())
    metric.baseline.max = float(sample.max())
    metric.baseline.percentiles = {
        label: float(np.percentile(sample, q)) for label, q in PERCENTILES.items()
    }
    metric.data_points = len(values)
    return metric
