"""
Bucket analyzer for object storage lifecycle and storage class optimization.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .base import AnalysisContext, BaseAnalyzer
from .models import (
    ConfidenceLevel,
    MetricSeries,
    PerformanceImpact,
    Recommendation,
    ResourceDescriptor,
    ResourceKind,
)
from ..core.catalog import Catalog


logger = logging.getLogger(__name__)

GIB = 1024 ** 3
INFRASTRUCTURE_BUCKET_MARKERS = ('cost-optimizer', 'cloudformation-templates')


@dataclass
class ObjectSampleSummary:
    """Size by storage class (GiB) and age buckets of a bucket's object sample."""
    object_count: int = 0
    total_bytes: int = 0
    size_by_class: Dict[str, float] = field(default_factory=lambda: {'standard': 0.0, 'ia': 0.0, 'glacier': 0.0})
    recent: int = 0     # < 30 days
    medium: int = 0     # 30-90 days
    old: int = 0        # > 90 days
    truncated: bool = False

    @property
    def old_fraction(self) -> float:
        return self.old / self.object_count if self.object_count else 0.0


def _as_utc(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def storage_class_group(storage_class: Optional[str]) -> Optional[str]:
    storage_class = storage_class or 'STANDARD'
    if storage_class == 'STANDARD':
        return 'standard'
    if 'IA' in storage_class:
        return 'ia'
    if 'GLACIER' in storage_class or 'DEEP_ARCHIVE' in storage_class:
        return 'glacier'
    return None


class BucketAnalyzer(BaseAnalyzer):
    """Storage tiering analyzer for object storage buckets."""

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.BUCKET

    def summarize_objects(self, objects: Sequence[Mapping[str, Any]], now: datetime) -> ObjectSampleSummary:
        """Aggregate at most ``max_objects_sampled`` non-empty objects."""
        summary = ObjectSampleSummary()
        now = _as_utc(now)

        for obj in objects:
            size = obj.get('size') or 0
            if not size:
                continue
            if summary.object_count >= self.settings.max_objects_sampled:
                summary.truncated = True
                break
            summary.object_count += 1
            summary.total_bytes += size

            group = storage_class_group(obj.get('storage_class'))
            if group is not None:
                summary.size_by_class[group] += size / GIB

            last_modified = _as_utc(obj.get('last_modified'))
            if last_modified is None:
                continue
            age_days = (now - last_modified).total_seconds() / 86400
            if age_days < 30:
                summary.recent += 1
            elif age_days < 90:
                summary.medium += 1
            else:
                summary.old += 1

        return summary

    def analyze(
        self,
        descriptor: ResourceDescriptor,
        metrics: Mapping[str, MetricSeries],
        catalog: Catalog,
        context: AnalysisContext
    ) -> List[Recommendation]:
        if any(marker in descriptor.resource_id for marker in INFRASTRUCTURE_BUCKET_MARKERS):
            logger.info(f"Skipping infrastructure bucket: {descriptor.resource_id}")
            return []

        objects = descriptor.attribute('objects') or []
        summary = self.summarize_objects(objects, context.now)
        logger.debug(f"Analyzed {summary.object_count} objects ({summary.total_bytes / GIB:.1f} GB) in bucket {descriptor.resource_id}")

        recommendations = []

        if not descriptor.attribute('has_lifecycle_policy') and summary.old_fraction > self.settings.lifecycle_old_fraction:
            recommendations.append(self._create_recommendation(
                descriptor,
                recommendation_type='lifecycle_policy',
                confidence=ConfidenceLevel.MEDIUM,
                monthly_savings=0.0,
                action='Implement lifecycle policy to automatically transition objects older than 90 days',
                reasoning=(f"{summary.old_fraction * 100:.1f}% of sampled objects are older than 90 days "
                           f"and could benefit from automatic transitions to IA or Glacier storage classes."),
            ))

        standard_gib = summary.size_by_class['standard']
        if standard_gib > self.settings.standard_min_gib:
            standard_price = catalog.unit_price('s3_standard_per_gb_month')
            ia_price = catalog.unit_price('s3_standard_ia_per_gb_month')
            eligible_gib = standard_gib * self.settings.ia_eligible_fraction
            monthly_savings = eligible_gib * (standard_price - ia_price)

            if monthly_savings > self.settings.min_monthly_savings:
                recommendations.append(self._create_recommendation(
                    descriptor,
                    recommendation_type='storage_class_optimization',
                    confidence=ConfidenceLevel.MEDIUM,
                    monthly_savings=monthly_savings,
                    monthly_cost=standard_gib * standard_price,
                    action='Transition infrequently accessed objects to Standard-IA storage class',
                    performance_impact=PerformanceImpact.MINIMAL,
                    reasoning=(f"Approximately {eligible_gib:.1f} GB of the {summary.total_bytes / GIB:.1f} GB sampled "
                               f"could be moved to Standard-IA, saving "
                               f"{standard_price - ia_price:.4f} per GB per month."),
                ))

        if summary.truncated:
            logger.debug(f"Bucket {descriptor.resource_id} sample truncated to {self.settings.max_objects_sampled} objects")

        return recommendations
