"""
Elastic IP analyzer for addresses that are allocated but not associated.
"""
import logging
from typing import List, Mapping

from .base import AnalysisContext, BaseAnalyzer
from .models import ConfidenceLevel, MetricSeries, Recommendation, ResourceDescriptor, ResourceKind
from ..core.catalog import Catalog


logger = logging.getLogger(__name__)

ASSOCIATION_FIELDS = ('instance_id', 'network_interface_id', 'association_id')


class ElasticIpAnalyzer(BaseAnalyzer):
    """Finds Elastic IPs that cost money while attached to nothing."""

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.ELASTIC_IP

    def is_unused(self, descriptor: ResourceDescriptor) -> bool:
        """An address is unused only when every association field is empty."""
        return not any(descriptor.attribute(name) for name in ASSOCIATION_FIELDS)

    def analyze(
        self,
        descriptor: ResourceDescriptor,
        metrics: Mapping[str, MetricSeries],
        catalog: Catalog,
        context: AnalysisContext
    ) -> List[Recommendation]:
        if not self.is_unused(descriptor):
            in_use = [name for name in ASSOCIATION_FIELDS if descriptor.attribute(name)]
            logger.debug(f"Elastic IP {descriptor.resource_id} is in use: {', '.join(in_use)}")
            return []

        public_ip = descriptor.attribute('public_ip') or descriptor.resource_id
        monthly_cost = catalog.unit_price('elastic_ip_monthly')
        logger.info(f"Found unused Elastic IP: {public_ip}")

        # Association status is authoritative, not sampled
        return [self._create_recommendation(
            descriptor,
            recommendation_type='unused_elastic_ip',
            confidence=ConfidenceLevel.HIGH,
            monthly_savings=monthly_cost,
            monthly_cost=monthly_cost,
            action='release-address',
            reasoning=(
                f"Elastic IP {public_ip} is not associated with any instance or network "
                f"interface and is billed while idle."
            ),
        )]
