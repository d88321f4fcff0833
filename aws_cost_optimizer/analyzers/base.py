"""
Base analyzer interface for resource kinds.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Tuple

from .models import (
    ConfidenceLevel,
    MetricQuery,
    MetricSeries,
    PerformanceImpact,
    Recommendation,
    ResourceDescriptor,
    ResourceKind,
)
from ..core.catalog import Catalog
from ..core.config import AnalysisSettings


HOURS_PER_MONTH = 730

ENVIRONMENT_TAG_KEYS = ('Environment', 'environment', 'Env', 'env', 'Stage', 'stage')


@dataclass(frozen=True)
class AnalysisContext:
    """Run-wide inputs shared by every analyzer.

    ``now`` is injected by the caller; analyzers never read the system clock.
    """
    now: datetime
    inventory: Tuple[ResourceDescriptor, ...] = field(default_factory=tuple)

    def peers(self, kind: ResourceKind) -> List[ResourceDescriptor]:
        """All resources of one kind in the inventory, in inventory order."""
        return [descriptor for descriptor in self.inventory if descriptor.kind == kind]


def detect_environment(descriptor: ResourceDescriptor) -> str:
    """Guess 'development', 'test' or 'production' from an environment tag,
    falling back to the resource name when no such tag exists."""
    label = next(
        (descriptor.tags[key] for key in ENVIRONMENT_TAG_KEYS if descriptor.tags.get(key)),
        descriptor.resource_id
    ).lower()
    if 'dev' in label:
        return 'development'
    if 'test' in label or 'staging' in label:
        return 'test'
    return 'production'


class BaseAnalyzer(ABC):
    """Abstract base class for all resource analyzers."""

    def __init__(self, settings: Optional[AnalysisSettings] = None):
        """Initialize the analyzer.

        Args:
            settings: Analyzer thresholds. Defaults to AnalysisSettings().
        """
        self.settings = settings or AnalysisSettings()

    @property
    @abstractmethod
    def kind(self) -> ResourceKind:
        """Resource kind this analyzer handles."""
        pass

    def metric_queries(self, descriptor: ResourceDescriptor) -> List[MetricQuery]:
        """Metric series this analyzer needs for a resource.

        Args:
            descriptor: Resource about to be analyzed

        Returns:
            Queries for the orchestrator to resolve through the metric provider.
            Analyzers that work from descriptor attributes alone return [].
        """
        return []

    @abstractmethod
    def analyze(
        self,
        descriptor: ResourceDescriptor,
        metrics: Mapping[str, MetricSeries],
        catalog: Catalog,
        context: AnalysisContext
    ) -> List[Recommendation]:
        """Produce zero or more recommendations for one resource.

        Args:
            descriptor: Resource to analyze
            metrics: Series keyed by metric name; a missing key means no data
            catalog: Shape and unit price reference data
            context: Run-wide inputs (now, inventory)

        Returns:
            Recommendations for the resource, possibly empty
        """
        pass

    def _usage_window(self) -> timedelta:
        return timedelta(days=self.settings.usage_lookback_days)

    def _series(self, descriptor: ResourceDescriptor, metrics: Mapping[str, MetricSeries], name: str) -> MetricSeries:
        """Series for ``name``, or an empty one when it was not collected."""
        series = metrics.get(name)
        if series is None:
            return MetricSeries(resource_id=descriptor.resource_id, metric_name=name)
        return series

    def _create_recommendation(
        self,
        descriptor: ResourceDescriptor,
        recommendation_type: str,
        confidence: ConfidenceLevel,
        monthly_savings: float,
        reasoning: str,
        action: Optional[str] = None,
        monthly_cost: Optional[float] = None,
        performance_impact: PerformanceImpact = PerformanceImpact.NONE,
        warnings: Tuple[str, ...] = (),
        **extra
    ) -> Recommendation:
        """Helper method to create recommendations for this analyzer's kind."""
        return Recommendation.create(
            resource_id=descriptor.resource_id,
            kind=self.kind,
            recommendation_type=recommendation_type,
            current_shape=descriptor.shape,
            action=action,
            confidence=confidence,
            monthly_cost=monthly_cost,
            monthly_savings=monthly_savings,
            performance_impact=performance_impact,
            reasoning=reasoning,
            warnings=warnings,
            **extra
        )


def queries_for(names_and_stats: Dict[str, str], lookback: timedelta, period_seconds: int = 3600) -> List[MetricQuery]:
    """Build hourly queries over the same lookback from ``{metric_name: statistic}``."""
    return [
        MetricQuery(metric_name=name, lookback=lookback, period_seconds=period_seconds, statistic=statistic)
        for name, statistic in names_and_stats.items()
    ]
