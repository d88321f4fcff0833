"""
Load balancer analyzer for idle application, network and classic load balancers.
"""
import logging
from typing import List, Mapping, Tuple

from .base import AnalysisContext, BaseAnalyzer
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

LOAD_BALANCER_HOURS_PER_MONTH = 24 * 30.44

KEEP = 'keep'
REVIEW = 'review'
CONSIDER_REMOVAL = 'consider-removal'


class LoadBalancerAnalyzer(BaseAnalyzer):
    """Finds load balancers with no targets, no healthy targets or no traffic."""

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.LOAD_BALANCER

    def traffic_metric(self, descriptor: ResourceDescriptor) -> str:
        if descriptor.attribute('lb_type') == 'network':
            return MetricName.PROCESSED_BYTES
        return MetricName.REQUEST_COUNT

    def metric_queries(self, descriptor: ResourceDescriptor) -> List[MetricQuery]:
        return [MetricQuery(
            metric_name=self.traffic_metric(descriptor),
            lookback=self._usage_window(),
            statistic='Sum',
        )]

    def target_counts(self, descriptor: ResourceDescriptor) -> Tuple[int, int]:
        """Return (total, healthy) targets across all target groups."""
        groups = descriptor.attribute('target_groups') or []
        total = sum(group.get('total', 0) for group in groups)
        healthy = sum(group.get('healthy', 0) for group in groups)
        return total, healthy

    def analyze(
        self,
        descriptor: ResourceDescriptor,
        metrics: Mapping[str, MetricSeries],
        catalog: Catalog,
        context: AnalysisContext
    ) -> List[Recommendation]:
        lb_type = descriptor.attribute('lb_type') or 'application'
        is_classic = lb_type == 'classic'
        monthly_cost = catalog.unit_price(f"load_balancer_{lb_type}_hourly") * LOAD_BALANCER_HOURS_PER_MONTH

        total_targets, healthy_targets = self.target_counts(descriptor)
        traffic = self._series(descriptor, metrics, self.traffic_metric(descriptor))
        hours_of_data = traffic.count
        total_traffic = traffic.total()
        unit = 'bytes' if lb_type == 'network' else 'requests'
        settings = self.settings

        if total_targets == 0:
            verdict, fraction, confidence = CONSIDER_REMOVAL, 1.0, ConfidenceLevel.HIGH
            reasoning = ("No instances registered. Classic load balancer appears unused." if is_classic
                         else "No targets configured. Load balancer has been running without any targets.")
        elif healthy_targets == 0 and not is_classic:
            verdict, confidence = REVIEW, ConfidenceLevel.MEDIUM
            fraction = settings.load_balancer_unhealthy_savings_fraction
            reasoning = f"All {total_targets} targets are unhealthy. Investigate if load balancer is needed."
        elif total_traffic == 0 and hours_of_data >= settings.load_balancer_min_hours:
            verdict, fraction, confidence = CONSIDER_REMOVAL, 1.0, ConfidenceLevel.HIGH
            reasoning = (f"No {unit} in the last {settings.usage_lookback_days} days despite having "
                         f"{healthy_targets} healthy targets. May be unused.")
        elif (0 < total_traffic < settings.load_balancer_low_traffic_requests
              and hours_of_data >= settings.load_balancer_low_traffic_hours):
            verdict, confidence = REVIEW, ConfidenceLevel.MEDIUM
            fraction = settings.load_balancer_low_traffic_savings_fraction
            reasoning = (f"Very low traffic ({total_traffic:.0f} {unit} in {settings.usage_lookback_days} days). "
                         f"Consider if load balancer is necessary.")
        else:
            verdict, fraction, confidence = KEEP, 0.0, ConfidenceLevel.MEDIUM
            reasoning = (f"Load balancer appears to be actively used with {healthy_targets} healthy targets "
                         f"and {total_traffic:.0f} {unit} in {settings.usage_lookback_days} days.")

        if hours_of_data < settings.load_balancer_min_hours:
            confidence = ConfidenceLevel.LOW
            reasoning += f" Limited metrics data available ({hours_of_data} hours)."

        logger.debug(f"Load balancer {descriptor.resource_id}: {verdict} ({reasoning})")
        if verdict == KEEP:
            return []

        warnings = []
        if is_classic:
            warnings.append("Classic load balancers are a previous-generation service; "
                            "consider migrating to an application or network load balancer.")

        return [self._create_recommendation(
            descriptor,
            recommendation_type=f"idle_load_balancer_{verdict.replace('-', '_')}",
            confidence=confidence,
            monthly_savings=monthly_cost * fraction,
            monthly_cost=monthly_cost,
            action=verdict,
            reasoning=reasoning,
            warnings=tuple(warnings),
        )]
