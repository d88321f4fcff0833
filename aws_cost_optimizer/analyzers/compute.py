"""
Compute analyzer for rightsizing EC2 instances against the catalog.
"""
import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Mapping, Optional

from .base import AnalysisContext, BaseAnalyzer
from .classifier import classify_workload
from .models import (
    ConfidenceLevel,
    MetricName,
    MetricQuery,
    MetricSeries,
    PerformanceImpact,
    Recommendation,
    ResourceDescriptor,
    ResourceKind,
    WorkloadPattern,
)
from ..core.catalog import Catalog, CatalogEntry
from ..core.exceptions import MissingDataError, UnknownShapeError


logger = logging.getLogger(__name__)

COMPUTE_HOURS_PER_MONTH = 24 * 30
MIN_REQUIRED_MEMORY_GIB = 0.5

ARCHITECTURE_WARNING = (
    "This recommendation changes CPU architecture from {current} to {proposed}. "
    "The cheaper instance may require rebuilding images and testing application "
    "compatibility before the change is made."
)


@dataclass(frozen=True)
class UtilizationSummary:
    """Aggregates of the series a rightsizing decision is based on."""
    mean_cpu: float
    max_cpu: float
    mean_memory: float
    has_memory: bool
    sample_count: int


@dataclass(frozen=True)
class ScoredCandidate:
    entry: CatalogEntry
    penalty: float
    score: float


class ComputeAnalyzer(BaseAnalyzer):
    """Rightsizing analyzer for compute instances."""

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.COMPUTE

    def metric_queries(self, descriptor: ResourceDescriptor) -> List[MetricQuery]:
        lookback = timedelta(days=self.settings.compute_lookback_days)
        return [
            MetricQuery(metric_name=MetricName.CPU_UTILIZATION, lookback=lookback),
            MetricQuery(metric_name=MetricName.MEMORY_UTILIZATION, lookback=lookback),
        ]

    def analyze(
        self,
        descriptor: ResourceDescriptor,
        metrics: Mapping[str, MetricSeries],
        catalog: Catalog,
        context: AnalysisContext
    ) -> List[Recommendation]:
        try:
            current = catalog.lookup(descriptor.shape)
        except UnknownShapeError as e:
            logger.info(f"Skipping rightsizing for {descriptor.resource_id}: {e.message}")
            return []

        cpu = self._series(descriptor, metrics, MetricName.CPU_UTILIZATION)
        memory = self._series(descriptor, metrics, MetricName.MEMORY_UTILIZATION)

        try:
            summary = self.summarize(cpu, memory)
        except MissingDataError as e:
            logger.info(f"Skipping rightsizing for {descriptor.resource_id}: {e.message}")
            return []

        logger.debug(
            f"Instance {descriptor.resource_id}: avg CPU {summary.mean_cpu:.1f}%, "
            f"max CPU {summary.max_cpu:.1f}%, avg memory {summary.mean_memory:.1f}%"
        )

        if self.is_well_utilized(summary):
            logger.info(f"Instance {descriptor.resource_id} is well utilized; no rightsizing needed")
            return []

        candidate = self.find_optimal_shape(summary, current, catalog)
        if candidate is None or candidate.entry.shape_key == current.shape_key:
            return []
        proposed = candidate.entry

        confidence = self.confidence_for(summary)
        warnings = []
        architecture_changed = proposed.architecture != current.architecture
        if architecture_changed:
            warnings.append(ARCHITECTURE_WARNING.format(
                current=current.architecture, proposed=proposed.architecture
            ))
            confidence = confidence.downgrade()

        workload_pattern = classify_workload(cpu.values, self.settings)
        monthly_savings = (current.hourly_price - proposed.hourly_price) * COMPUTE_HOURS_PER_MONTH
        current_monthly = current.hourly_price * COMPUTE_HOURS_PER_MONTH

        return [Recommendation.create(
            resource_id=descriptor.resource_id,
            kind=self.kind,
            recommendation_type='rightsize',
            current_shape=current.shape_key,
            proposed_shape=proposed.shape_key,
            action='resize',
            confidence=confidence,
            workload_pattern=workload_pattern,
            monthly_cost=current_monthly,
            monthly_savings=monthly_savings,
            savings_percentage=monthly_savings / current_monthly * 100 if current_monthly else 0.0,
            performance_impact=self.performance_impact(summary, current, proposed, architecture_changed),
            reasoning=self.build_reasoning(summary, workload_pattern),
            warnings=warnings,
        )]

    def summarize(self, cpu: MetricSeries, memory: MetricSeries) -> UtilizationSummary:
        """Aggregate the CPU and memory series.

        Raises:
            MissingDataError: If there are no CPU samples at all
        """
        if cpu.is_empty:
            raise MissingDataError("No CPU utilization data available")
        return UtilizationSummary(
            mean_cpu=cpu.mean(),
            max_cpu=cpu.maximum(),
            mean_memory=memory.mean(),
            has_memory=not memory.is_empty,
            sample_count=cpu.count,
        )

    def is_well_utilized(self, summary: UtilizationSummary) -> bool:
        return (summary.mean_cpu > self.settings.well_utilized_mean_cpu
                and summary.max_cpu > self.settings.well_utilized_max_cpu)

    def confidence_for(self, summary: UtilizationSummary) -> ConfidenceLevel:
        confidence = ConfidenceLevel.from_sample_count(
            summary.sample_count,
            self.settings.high_confidence_samples,
            self.settings.medium_confidence_samples,
        )
        if not summary.has_memory:
            confidence = confidence.downgrade()
        return confidence

    def required_capacity(self, summary: UtilizationSummary, current: CatalogEntry):
        """Return (vcpu, memory_gib) the workload needs at target utilization."""
        cpu_ratio = max(
            summary.mean_cpu / self.settings.target_cpu_utilization,
            summary.max_cpu / self.settings.peak_cpu_headroom,
        )
        required_vcpu = max(1, math.ceil(current.vcpu * cpu_ratio))

        if summary.has_memory:
            required_memory = current.memory_gib * (summary.mean_memory / self.settings.target_memory_utilization)
        else:
            required_memory = current.memory_gib * self.settings.no_agent_memory_factor
        return required_vcpu, max(required_memory, MIN_REQUIRED_MEMORY_GIB)

    def find_optimal_shape(
        self,
        summary: UtilizationSummary,
        current: CatalogEntry,
        catalog: Catalog
    ) -> Optional[ScoredCandidate]:
        """Pick the cheapest acceptable catalog shape, or None."""
        required_vcpu, required_memory = self.required_capacity(summary, current)
        logger.debug(f"Required resources: {required_vcpu} vCPU, {required_memory:.1f} GiB memory")

        candidates = []
        for entry in catalog.entries_of_kind(ResourceKind.COMPUTE.value):
            if entry.vcpu < required_vcpu or entry.memory_gib < required_memory:
                continue
            if entry.hourly_price >= current.hourly_price:
                continue

            penalty = (entry.vcpu / required_vcpu - 1) + (entry.memory_gib / required_memory - 1)
            if penalty > self.settings.max_overprovision_penalty:
                continue

            score = entry.hourly_price + penalty * self.settings.overprovision_weight
            candidates.append(ScoredCandidate(entry=entry, penalty=penalty, score=score))

        if not candidates:
            return None
        candidates.sort(key=lambda c: (c.score, c.entry.shape_key))
        return candidates[0]

    def performance_impact(
        self,
        summary: UtilizationSummary,
        current: CatalogEntry,
        proposed: CatalogEntry,
        architecture_changed: bool
    ) -> PerformanceImpact:
        shrinks = proposed.vcpu < current.vcpu or proposed.memory_gib < current.memory_gib
        if not shrinks:
            return PerformanceImpact.NONE
        if architecture_changed or summary.mean_cpu > 50 or summary.mean_memory > 60:
            return PerformanceImpact.MODERATE
        return PerformanceImpact.MINIMAL

    def build_reasoning(self, summary: UtilizationSummary, workload_pattern: WorkloadPattern) -> str:
        parts = [f"Based on {summary.sample_count} hours of metrics data:"]
        if summary.mean_cpu < 20:
            parts.append(f"Low average CPU utilization ({summary.mean_cpu:.1f}%).")
        if summary.max_cpu < 50:
            parts.append(f"Peak CPU usage below 50% ({summary.max_cpu:.1f}%).")
        if summary.has_memory and summary.mean_memory < 50:
            parts.append(f"Low memory utilization ({summary.mean_memory:.1f}%).")
        if not summary.has_memory:
            parts.append("Memory metrics unavailable (no in-guest agent detected).")
        parts.append(f"Workload pattern: {workload_pattern.value}.")
        return " ".join(parts)
