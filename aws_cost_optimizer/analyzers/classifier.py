"""
Workload pattern classification from CPU utilization samples.
"""
import math
from typing import Optional, Sequence

from .models import WorkloadPattern
from ..core.config import AnalysisSettings


def classify_workload(cpu_values: Sequence[float], settings: Optional[AnalysisSettings] = None) -> WorkloadPattern:
    """Label the shape of a CPU utilization series.

    Checks run in priority order: a mostly idle series is dev/test even when it
    is also highly variable.

    Args:
        cpu_values: CPU utilization percentages, possibly empty
        settings: Classification thresholds

    Returns:
        The workload pattern; ``unknown`` for an empty series
    """
    settings = settings or AnalysisSettings()
    if not cpu_values:
        return WorkloadPattern.UNKNOWN

    count = len(cpu_values)
    mean = sum(cpu_values) / count
    idle_fraction = sum(1 for value in cpu_values if value < settings.idle_cpu_threshold) / count

    if idle_fraction > settings.dev_test_idle_fraction:
        return WorkloadPattern.DEV_TEST

    std_dev = math.sqrt(sum((value - mean) ** 2 for value in cpu_values) / count)
    variation = std_dev / mean if mean > 0 else math.inf
    swing = max(cpu_values) - min(cpu_values)

    if variation > settings.peaky_variation or swing > settings.peaky_swing:
        return WorkloadPattern.PEAKY
    if variation < settings.steady_variation and mean > settings.steady_min_cpu:
        return WorkloadPattern.STEADY
    return WorkloadPattern.UNKNOWN
