"""
Volume analyzer for block storage volumes that are not attached to anything.
"""
import logging
from typing import List, Mapping

from .base import AnalysisContext, BaseAnalyzer
from .models import ConfidenceLevel, MetricSeries, Recommendation, ResourceDescriptor, ResourceKind
from ..core.catalog import Catalog


logger = logging.getLogger(__name__)


class VolumeAnalyzer(BaseAnalyzer):
    """Finds unattached EBS volumes."""

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.VOLUME

    def analyze(
        self,
        descriptor: ResourceDescriptor,
        metrics: Mapping[str, MetricSeries],
        catalog: Catalog,
        context: AnalysisContext
    ) -> List[Recommendation]:
        state = descriptor.attribute('state')
        attachments = descriptor.attribute('attachments') or []
        if state != 'available' or attachments:
            return []

        size_gib = descriptor.attribute('size_gib') or 0
        volume_type = descriptor.shape or descriptor.attribute('volume_type') or 'gp2'
        per_gib = catalog.unit_price(
            f"ebs_{volume_type}_per_gb_month",
            default=catalog.unit_price('ebs_default_per_gb_month')
        )
        monthly_cost = size_gib * per_gib

        return [self._create_recommendation(
            descriptor,
            recommendation_type='unattached_volume',
            confidence=ConfidenceLevel.HIGH,
            monthly_savings=monthly_cost,
            monthly_cost=monthly_cost,
            action='snapshot-and-delete',
            reasoning=(
                f"{volume_type} volume of {size_gib} GiB is not attached to any instance. "
                f"Snapshot it if the data is still needed, then delete it."
            ),
        )]
