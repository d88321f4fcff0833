"""
CloudWatch metric provider resolving provider-neutral metric names to
CloudWatch namespaces, metrics and dimensions.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Tuple

import boto3

from ..analyzers.models import (
    MetricName,
    MetricSample,
    MetricSeries,
    ResourceDescriptor,
    ResourceKind,
    TimeWindow,
)
from ..core.exceptions import MissingDataError


logger = logging.getLogger(__name__)

# GetMetricStatistics returns at most this many datapoints per call
MAX_DATAPOINTS_PER_REQUEST = 1440

AGENT_NAMESPACE = 'CWAgent'


@dataclass(frozen=True)
class MetricSpec:
    """Where a provider-neutral metric lives in CloudWatch."""
    namespace: str
    metric_name: str
    dimension_name: str
    statistic: str = 'Average'


COMPUTE_METRICS = {
    MetricName.CPU_UTILIZATION: MetricSpec('AWS/EC2', 'CPUUtilization', 'InstanceId'),
    MetricName.MEMORY_UTILIZATION: MetricSpec(AGENT_NAMESPACE, 'mem_used_percent', 'InstanceId'),
}

LOAD_BALANCER_METRICS = {
    'application': {
        MetricName.REQUEST_COUNT: MetricSpec('AWS/ApplicationELB', 'RequestCount', 'LoadBalancer', 'Sum'),
    },
    'network': {
        MetricName.PROCESSED_BYTES: MetricSpec('AWS/NetworkELB', 'ProcessedBytes', 'LoadBalancer', 'Sum'),
    },
    'classic': {
        MetricName.REQUEST_COUNT: MetricSpec('AWS/ELB', 'RequestCount', 'LoadBalancerName', 'Sum'),
    },
}

DATABASE_METRICS = {
    MetricName.CONNECTION_COUNT: MetricSpec('AWS/RDS', 'DatabaseConnections', 'DBInstanceIdentifier'),
    MetricName.CPU_UTILIZATION: MetricSpec('AWS/RDS', 'CPUUtilization', 'DBInstanceIdentifier'),
    MetricName.READ_IOPS: MetricSpec('AWS/RDS', 'ReadIOPS', 'DBInstanceIdentifier'),
}

CACHE_METRICS = {
    MetricName.CPU_UTILIZATION: MetricSpec('AWS/ElastiCache', 'CPUUtilization', 'CacheClusterId'),
    MetricName.CONNECTION_COUNT: MetricSpec('AWS/ElastiCache', 'CurrConnections', 'CacheClusterId'),
    MetricName.MEMORY_UTILIZATION: MetricSpec('AWS/ElastiCache', 'DatabaseMemoryUsagePercentage', 'CacheClusterId'),
    MetricName.NETWORK_BYTES_IN: MetricSpec('AWS/ElastiCache', 'NetworkBytesIn', 'CacheClusterId', 'Sum'),
    MetricName.CACHE_HITS: MetricSpec('AWS/ElastiCache', 'CacheHits', 'CacheClusterId', 'Sum'),
    MetricName.CACHE_MISSES: MetricSpec('AWS/ElastiCache', 'CacheMisses', 'CacheClusterId', 'Sum'),
}

MEMCACHED_METRICS = {
    MetricName.CACHE_HITS: MetricSpec('AWS/ElastiCache', 'GetHits', 'CacheClusterId', 'Sum'),
    MetricName.CACHE_MISSES: MetricSpec('AWS/ElastiCache', 'GetMisses', 'CacheClusterId', 'Sum'),
}

NAT_GATEWAY_METRICS = {
    MetricName.BYTES_OUT: MetricSpec('AWS/NATGateway', 'BytesOutToDestination', 'NatGatewayId', 'Sum'),
    MetricName.CONNECTION_COUNT: MetricSpec('AWS/NATGateway', 'ActiveConnectionCount', 'NatGatewayId'),
}


class CloudWatchMetricProvider:
    """Metric provider backed by CloudWatch GetMetricStatistics.

    Instances are callable as ``provider(resource_id, metric_name, window, period)``.
    The underlying client is created once and shared across worker threads.
    """

    def __init__(self, session: boto3.Session, region: str, inventory: Iterable[ResourceDescriptor]):
        self.region = region
        self.client = session.client('cloudwatch', region_name=region)
        self.descriptors: Dict[str, ResourceDescriptor] = {d.resource_id: d for d in inventory}

    def __call__(self, resource_id: str, metric_name: str, window: TimeWindow, period_seconds: int) -> MetricSeries:
        descriptor = self.descriptors.get(resource_id)
        if descriptor is None:
            raise MissingDataError(f"Resource {resource_id} is not in the inventory")

        spec = self.resolve(descriptor, metric_name)
        dimensions = self._dimensions(descriptor, spec)

        samples: List[MetricSample] = []
        for start, end in self._chunks(window, period_seconds):
            response = self.client.get_metric_statistics(
                Namespace=spec.namespace,
                MetricName=spec.metric_name,
                Dimensions=dimensions,
                StartTime=start,
                EndTime=end,
                Period=period_seconds,
                Statistics=[spec.statistic],
            )
            samples.extend(
                MetricSample(timestamp=point['Timestamp'], value=float(point[spec.statistic]))
                for point in response['Datapoints']
            )

        logger.debug(f"Fetched {len(samples)} {spec.namespace}/{spec.metric_name} datapoints for {resource_id}")
        return MetricSeries(
            resource_id=resource_id,
            metric_name=metric_name,
            period_seconds=period_seconds,
            samples=tuple(samples),
        )

    def resolve(self, descriptor: ResourceDescriptor, metric_name: str) -> MetricSpec:
        """Find the CloudWatch location of a metric for a resource.

        Raises:
            MissingDataError: If CloudWatch has no such metric for this kind
        """
        table: Dict[str, MetricSpec] = {}
        if descriptor.kind == ResourceKind.COMPUTE:
            table = COMPUTE_METRICS
        elif descriptor.kind == ResourceKind.LOAD_BALANCER:
            table = LOAD_BALANCER_METRICS.get(descriptor.attribute('lb_type') or 'application', {})
        elif descriptor.kind == ResourceKind.DATABASE:
            table = DATABASE_METRICS
        elif descriptor.kind == ResourceKind.CACHE_NODE:
            table = dict(CACHE_METRICS)
            if descriptor.attribute('engine') == 'memcached':
                table.update(MEMCACHED_METRICS)
        elif descriptor.kind == ResourceKind.NAT_GATEWAY:
            table = NAT_GATEWAY_METRICS

        spec = table.get(metric_name)
        if spec is None:
            raise MissingDataError(f"No CloudWatch metric for {metric_name} on {descriptor.kind.value}")
        return spec

    def _dimensions(self, descriptor: ResourceDescriptor, spec: MetricSpec) -> List[Dict[str, str]]:
        value = descriptor.attribute('dimension_value') or descriptor.resource_id
        dimensions = [{'Name': spec.dimension_name, 'Value': value}]
        if spec.namespace != AGENT_NAMESPACE:
            return dimensions

        # The agent publishes extra dimensions (ImageId, InstanceType, ...) that must match exactly
        response = self.client.list_metrics(
            Namespace=spec.namespace,
            MetricName=spec.metric_name,
            Dimensions=dimensions,
        )
        if not response['Metrics']:
            raise MissingDataError(
                f"No {spec.metric_name} metric for {descriptor.resource_id}; is the CloudWatch agent installed?"
            )
        return response['Metrics'][0]['Dimensions']

    @staticmethod
    def _chunks(window: TimeWindow, period_seconds: int) -> List[Tuple]:
        """Split a window so no request exceeds the datapoint limit."""
        step = timedelta(seconds=period_seconds * MAX_DATAPOINTS_PER_REQUEST)
        chunks = []
        start = window.start
        while start < window.end:
            end = min(start + step, window.end)
            chunks.append((start, end))
            start = end
        return chunks
