"""
NAT gateway analyzer for idle gateways, missing VPC endpoints and duplicates.
"""
import logging
from typing import List, Mapping

from .base import AnalysisContext, BaseAnalyzer, queries_for
from .models import (
    ConfidenceLevel,
    MetricName,
    MetricQuery,
    MetricSeries,
    Recommendation,
    ResourceDescriptor,
    ResourceKind,
)
from ..core.catalog import Catalog


logger = logging.getLogger(__name__)

GIB = 1024 ** 3


class NatGatewayAnalyzer(BaseAnalyzer):
    """Idle, VPC endpoint and duplicate checks for NAT gateways.

    The three checks are independent and may all fire for one gateway.
    """

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.NAT_GATEWAY

    def metric_queries(self, descriptor: ResourceDescriptor) -> List[MetricQuery]:
        return queries_for({
            MetricName.BYTES_OUT: 'Sum',
            MetricName.CONNECTION_COUNT: 'Average',
        }, self._usage_window())

    def analyze(
        self,
        descriptor: ResourceDescriptor,
        metrics: Mapping[str, MetricSeries],
        catalog: Catalog,
        context: AnalysisContext
    ) -> List[Recommendation]:
        fixed_cost = catalog.unit_price('nat_gateway_monthly')
        per_gb = catalog.unit_price('nat_data_transfer_per_gb')

        bytes_out = self._series(descriptor, metrics, MetricName.BYTES_OUT)
        connections = self._series(descriptor, metrics, MetricName.CONNECTION_COUNT)
        avg_daily_gb = bytes_out.total() / (self.settings.usage_lookback_days * GIB)
        transfer_cost = avg_daily_gb * 30 * per_gb
        monthly_cost = fixed_cost + transfer_cost
        avg_connections = connections.mean()

        recommendations = []

        if connections.is_empty or bytes_out.is_empty:
            logger.info(f"No usage metrics for NAT gateway {descriptor.resource_id}; skipping idle check")
        elif avg_connections < self.settings.nat_idle_connections and avg_daily_gb < self.settings.nat_idle_daily_gb:
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='idle_nat_gateway',
                confidence=ConfidenceLevel.HIGH,
                monthly_savings=monthly_cost,
                monthly_cost=monthly_cost,
                action='Consider removing this NAT Gateway if not needed',
                reasoning=(f"NAT Gateway has very low usage ({avg_connections:.1f} avg connections, "
                           f"{avg_daily_gb:.2f} GB/day)."),
            ))

        endpoint_services = descriptor.attribute('vpc_endpoint_services') or []
        endpoint_checks = [
            ('s3', 'S3', self.settings.nat_s3_traffic_fraction, ConfidenceLevel.MEDIUM),
            ('dynamodb', 'DynamoDB', self.settings.nat_dynamodb_traffic_fraction, ConfidenceLevel.LOW),
        ]
        for service, label, fraction, confidence in endpoint_checks:
            if any(name.endswith(f".{service}") or name == service for name in endpoint_services):
                continue
            savings = transfer_cost * fraction
            if savings <= 0:
                continue
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type=f"add_{service}_vpc_endpoint",
                confidence=confidence,
                monthly_savings=savings,
                monthly_cost=monthly_cost,
                action=f"Add {label} VPC Endpoint to reduce NAT Gateway data transfer costs",
                reasoning=(f"No {label} gateway endpoint found in VPC {descriptor.attribute('vpc_id')}; "
                           f"assuming {fraction:.0%} of NAT traffic goes to {label}."),
            ))

        if self.is_duplicate(descriptor, context):
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='duplicate_nat_gateway',
                confidence=ConfidenceLevel.HIGH,
                monthly_savings=fixed_cost,
                monthly_cost=monthly_cost,
                action='Remove duplicate NAT Gateways in the same availability zone',
                reasoning=f"Multiple NAT Gateways found in subnet {descriptor.attribute('subnet_id')}.",
            ))

        return recommendations

    def is_duplicate(self, descriptor: ResourceDescriptor, context: AnalysisContext) -> bool:
        """True for every available gateway in a subnet except the first by id.

        Only the extras are flagged, so one redundant pair is counted once.
        """
        subnet_id = descriptor.attribute('subnet_id')
        if not subnet_id:
            return False
        same_subnet = sorted(
            peer.resource_id for peer in context.peers(ResourceKind.NAT_GATEWAY)
            if peer.attribute('subnet_id') == subnet_id
            and peer.attribute('state', 'available') == 'available'
        )
        return len(same_subnet) > 1 and descriptor.resource_id in same_subnet[1:]
