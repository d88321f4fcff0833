"""
Database analyzer for idle, oversized and non-production RDS instances.
"""
import logging
from typing import List, Mapping

from .base import HOURS_PER_MONTH, AnalysisContext, BaseAnalyzer, detect_environment, queries_for
from .models import (
    ConfidenceLevel,
    MetricName,
    MetricQuery,
    MetricSeries,
    PerformanceImpact,
    Recommendation,
    ResourceDescriptor,
    ResourceKind,
)
from ..core.catalog import Catalog
from ..core.exceptions import UnknownShapeError


logger = logging.getLogger(__name__)


class DatabaseAnalyzer(BaseAnalyzer):
    """Idle, oversize and environment checks for database instances.

    The checks are independent, so one instance can receive several
    recommendations (for example downsize and disable multi-AZ).
    """

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.DATABASE

    def metric_queries(self, descriptor: ResourceDescriptor) -> List[MetricQuery]:
        return queries_for({
            MetricName.CONNECTION_COUNT: 'Average',
            MetricName.CPU_UTILIZATION: 'Average',
            MetricName.READ_IOPS: 'Average',
        }, self._usage_window())

    def monthly_cost(self, descriptor: ResourceDescriptor, catalog: Catalog) -> float:
        """On-demand monthly cost; multi-AZ deployments pay for a standby."""
        entry = catalog.lookup(descriptor.shape)
        cost = entry.hourly_price * HOURS_PER_MONTH
        if descriptor.attribute('multi_az'):
            cost *= 2
        return cost

    def analyze(
        self,
        descriptor: ResourceDescriptor,
        metrics: Mapping[str, MetricSeries],
        catalog: Catalog,
        context: AnalysisContext
    ) -> List[Recommendation]:
        try:
            monthly_cost = self.monthly_cost(descriptor, catalog)
        except UnknownShapeError as e:
            logger.info(f"Skipping database {descriptor.resource_id}: {e.message}")
            return []

        environment = detect_environment(descriptor)
        connections = self._series(descriptor, metrics, MetricName.CONNECTION_COUNT)
        cpu = self._series(descriptor, metrics, MetricName.CPU_UTILIZATION)
        read_iops = self._series(descriptor, metrics, MetricName.READ_IOPS)
        has_usage = not connections.is_empty and not cpu.is_empty

        avg_connections = connections.mean()
        avg_cpu = cpu.mean()
        max_cpu = cpu.maximum()

        settings = self.settings
        recommendations = []

        if not has_usage:
            logger.info(f"No usage metrics for database {descriptor.resource_id}; skipping usage checks")
        elif (avg_connections < settings.database_idle_max_connections
              and avg_cpu < settings.database_idle_max_cpu
              and (read_iops.is_empty or read_iops.mean() < settings.database_idle_max_read_iops)):
            action = ('Investigate if this database is still needed' if environment == 'production'
                      else 'Consider deleting or stopping this database')
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='idle_database',
                confidence=ConfidenceLevel.HIGH,
                monthly_savings=monthly_cost,
                monthly_cost=monthly_cost,
                action=action,
                reasoning=(f"Database appears to be idle (avg connections {avg_connections:.1f}, "
                           f"avg CPU {avg_cpu:.1f}% over {connections.count} hours)."),
            ))
        elif (avg_cpu < settings.database_oversized_max_avg_cpu
              and max_cpu < settings.database_oversized_max_peak_cpu and avg_connections > 0):
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='downsize_database',
                confidence=ConfidenceLevel.MEDIUM,
                monthly_savings=monthly_cost * settings.database_downsize_savings_fraction,
                monthly_cost=monthly_cost,
                action='Consider downsizing to a smaller instance class',
                performance_impact=PerformanceImpact.MINIMAL,
                reasoning=f"CPU utilization is low (avg: {avg_cpu:.0f}%, max: {max_cpu:.0f}%).",
            ))

        if descriptor.attribute('multi_az') and environment != 'production':
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='disable_multi_az',
                confidence=ConfidenceLevel.MEDIUM,
                monthly_savings=monthly_cost * settings.database_multi_az_savings_fraction,
                monthly_cost=monthly_cost,
                action='Consider disabling Multi-AZ for non-production databases',
                reasoning=f"Multi-AZ is enabled in a {environment} environment.",
            ))

        if environment != 'production' and avg_connections > 0:
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='schedule_auto_stop',
                confidence=ConfidenceLevel.MEDIUM,
                monthly_savings=monthly_cost * settings.database_auto_stop_savings_fraction,
                monthly_cost=monthly_cost,
                action='Implement auto-stop schedule for nights and weekends',
                reasoning=f"{environment.capitalize()} database running 24/7.",
            ))

        return recommendations
