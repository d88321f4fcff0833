"""
Cache analyzer for idle, oversized and low-value ElastiCache clusters.
"""
import logging
from typing import Dict, List, Mapping

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


class CacheAnalyzer(BaseAnalyzer):
    """Idle, oversize, hit-rate and multi-AZ checks for cache clusters."""

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.CACHE_NODE

    def metric_queries(self, descriptor: ResourceDescriptor) -> List[MetricQuery]:
        wanted: Dict[str, str] = {
            MetricName.CPU_UTILIZATION: 'Average',
            MetricName.CONNECTION_COUNT: 'Average',
            MetricName.MEMORY_UTILIZATION: 'Average',
            MetricName.NETWORK_BYTES_IN: 'Sum',
        }
        if descriptor.attribute('engine') == 'memcached':
            wanted[MetricName.CACHE_HITS] = 'Sum'
            wanted[MetricName.CACHE_MISSES] = 'Sum'
        return queries_for(wanted, self._usage_window())

    def monthly_cost(self, descriptor: ResourceDescriptor, catalog: Catalog) -> float:
        entry = catalog.lookup(descriptor.shape)
        nodes = descriptor.attribute('num_nodes') or 1
        return entry.hourly_price * HOURS_PER_MONTH * nodes

    def is_idle(self, avg_cpu: float, connections: MetricSeries, bytes_in: MetricSeries) -> bool:
        settings = self.settings
        if avg_cpu >= settings.cache_idle_max_cpu:
            return False
        if not connections.is_empty:
            return connections.mean() < settings.cache_idle_max_connections
        # Memcached clusters may only report traffic volume
        return not bytes_in.is_empty and bytes_in.total() < settings.cache_idle_max_bytes_in

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
            logger.info(f"Skipping cache cluster {descriptor.resource_id}: {e.message}")
            return []

        cpu = self._series(descriptor, metrics, MetricName.CPU_UTILIZATION)
        connections = self._series(descriptor, metrics, MetricName.CONNECTION_COUNT)
        memory = self._series(descriptor, metrics, MetricName.MEMORY_UTILIZATION)
        bytes_in = self._series(descriptor, metrics, MetricName.NETWORK_BYTES_IN)
        avg_cpu = cpu.mean()
        max_cpu = cpu.maximum()
        avg_connections = connections.mean()
        environment = detect_environment(descriptor)
        engine = descriptor.attribute('engine') or 'redis'
        settings = self.settings

        recommendations = []

        if cpu.is_empty:
            logger.info(f"No CPU metrics for cache cluster {descriptor.resource_id}; skipping usage checks")
        elif self.is_idle(avg_cpu, connections, bytes_in):
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='idle_cache_cluster',
                confidence=ConfidenceLevel.HIGH,
                monthly_savings=monthly_cost,
                monthly_cost=monthly_cost,
                action='Consider deleting this unused cache cluster',
                reasoning=(f"{engine.capitalize()} cluster appears to be idle "
                           f"(avg CPU {avg_cpu:.1f}%, avg connections {avg_connections:.1f})."),
            ))
        elif (avg_cpu < settings.cache_oversized_max_avg_cpu and max_cpu < settings.cache_oversized_max_peak_cpu
              and (memory.is_empty or memory.mean() < settings.cache_oversized_max_memory)
              and (connections.is_empty or avg_connections > 0)):
            memory_note = '' if memory.is_empty else f", memory: {memory.mean():.0f}%"
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='downsize_cache_node',
                confidence=ConfidenceLevel.MEDIUM,
                monthly_savings=monthly_cost * settings.cache_downsize_savings_fraction,
                monthly_cost=monthly_cost,
                action='Consider using a smaller node type',
                performance_impact=PerformanceImpact.MINIMAL,
                reasoning=f"Low resource utilization (CPU avg: {avg_cpu:.0f}%, max: {max_cpu:.0f}%{memory_note}).",
            ))

        if engine == 'memcached':
            hits = self._series(descriptor, metrics, MetricName.CACHE_HITS).total()
            misses = self._series(descriptor, metrics, MetricName.CACHE_MISSES).total()
            hit_rate = hits / (hits + misses) * 100 if hits > 0 else 0.0
            if hits > settings.cache_min_hits_for_hit_rate and hit_rate < settings.cache_low_hit_rate:
                recommendations.append(self._create_recommendation(
                    descriptor,
                    recommendation_type='low_cache_hit_rate',
                    confidence=ConfidenceLevel.LOW,
                    monthly_savings=monthly_cost * settings.cache_hit_rate_savings_fraction,
                    monthly_cost=monthly_cost,
                    action='Review caching strategy or consider removing if not effective',
                    reasoning=f"Low cache hit rate ({hit_rate:.0f}%).",
                ))

        low_traffic = not connections.is_empty and avg_connections < settings.cache_low_traffic_connections
        if descriptor.attribute('multi_az') and (environment != 'production' or low_traffic):
            reason = (f"Multi-AZ enabled in a {environment} environment." if environment != 'production'
                      else f"Multi-AZ enabled for a low-traffic cluster ({avg_connections:.0f} avg connections).")
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='disable_multi_az',
                confidence=ConfidenceLevel.LOW,
                monthly_savings=monthly_cost * settings.cache_multi_az_savings_fraction,
                monthly_cost=monthly_cost,
                action='Consider disabling Multi-AZ if high availability is not critical',
                reasoning=reason,
            ))

        return recommendations
