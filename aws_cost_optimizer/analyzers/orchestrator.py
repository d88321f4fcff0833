"""
Analysis orchestrator for fanning resource analysis out across a bounded worker pool.
"""
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type

from .base import AnalysisContext, BaseAnalyzer
from .bucket import BucketAnalyzer
from .cache import CacheAnalyzer
from .compute import ComputeAnalyzer
from .database import DatabaseAnalyzer
from .elastic_ip import ElasticIpAnalyzer
from .load_balancer import LoadBalancerAnalyzer
from .models import (
    AnalysisResult,
    MetricSeries,
    Recommendation,
    ResourceDescriptor,
    ResourceError,
    ResourceKind,
    TimeWindow,
)
from .nat_gateway import NatGatewayAnalyzer
from .volume import VolumeAnalyzer
from ..core.catalog import Catalog
from ..core.config import AnalysisSettings
from ..core.exceptions import (
    CatalogUnavailableError,
    CollectionError,
    CostOptimizerError,
    MissingDataError,
)


logger = logging.getLogger(__name__)

MetricProvider = Callable[[str, str, TimeWindow, int], MetricSeries]

DEFAULT_MAX_WORKERS = 8
POLL_INTERVAL_SECONDS = 0.25

ANALYZER_CLASSES: Dict[ResourceKind, Type[BaseAnalyzer]] = {
    ResourceKind.COMPUTE: ComputeAnalyzer,
    ResourceKind.VOLUME: VolumeAnalyzer,
    ResourceKind.BUCKET: BucketAnalyzer,
    ResourceKind.LOAD_BALANCER: LoadBalancerAnalyzer,
    ResourceKind.ELASTIC_IP: ElasticIpAnalyzer,
    ResourceKind.DATABASE: DatabaseAnalyzer,
    ResourceKind.CACHE_NODE: CacheAnalyzer,
    ResourceKind.NAT_GATEWAY: NatGatewayAnalyzer,
}

NOT_ANALYZED_MESSAGE = "Not analyzed: run was cancelled before this resource completed"


class _Skipped:
    """Marker returned by a worker that noticed cancellation before starting."""


class AnalysisOrchestrator:
    """Runs every applicable analyzer against every resource in an inventory."""

    def __init__(
        self,
        catalog: Optional[Catalog],
        metric_provider: MetricProvider,
        settings: Optional[AnalysisSettings] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        analyzers: Optional[Mapping[ResourceKind, BaseAnalyzer]] = None
    ):
        """Initialize the orchestrator.

        Args:
            catalog: Shape and price reference data, loaded once per run
            metric_provider: Callable resolving (resource_id, metric_name, window, period)
                to a MetricSeries; must be safe to call from several threads
            settings: Analyzer thresholds
            max_workers: Upper bound on resources analyzed concurrently
            analyzers: Optional analyzer instances overriding the defaults per kind
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.catalog = catalog
        self.metric_provider = metric_provider
        self.settings = settings or AnalysisSettings()
        self.max_workers = max_workers

        self.analyzers: Dict[ResourceKind, BaseAnalyzer] = {
            kind: analyzer_class(self.settings) for kind, analyzer_class in ANALYZER_CLASSES.items()
        }
        if analyzers:
            self.analyzers.update(analyzers)

    def get_analyzer(self, kind: ResourceKind) -> BaseAnalyzer:
        """Get the analyzer for a resource kind.

        Raises:
            CostOptimizerError: If no analyzer handles the kind
        """
        analyzer = self.analyzers.get(kind)
        if analyzer is None:
            raise CostOptimizerError(f"Unsupported resource kind: {kind}")
        return analyzer

    def run(
        self,
        inventory: Sequence[ResourceDescriptor],
        now: datetime,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None
    ) -> AnalysisResult:
        """Analyze an inventory and assemble the recommendation set.

        Args:
            inventory: Resources of one account/region scope
            now: Current time, used for metric windows and age calculations
            cancel_event: Set by the caller to stop issuing new work
            timeout: Seconds after which the run stops issuing new work

        Returns:
            Best-effort result. Resources that failed or were never reached are
            listed in ``resource_errors``; partial results are kept on cancel.

        Raises:
            CatalogUnavailableError: If no catalog was supplied
        """
        if self.catalog is None:
            raise CatalogUnavailableError()

        inventory = list(inventory)
        cancel_event = cancel_event or threading.Event()
        stop = threading.Event()
        deadline = time.monotonic() + timeout if timeout is not None else None
        context = AnalysisContext(now=now, inventory=tuple(inventory))

        logger.info(f"Starting analysis of {len(inventory)} resources with {self.max_workers} workers")

        outcomes: Dict[int, List[Recommendation]] = {}
        errors: Dict[int, ResourceError] = {}
        cancelled = False

        def should_stop() -> bool:
            return cancel_event.is_set() or (deadline is not None and time.monotonic() >= deadline)

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='analysis')
        future_to_index: Dict[Future, int] = {}
        try:
            for index, descriptor in enumerate(inventory):
                if should_stop():
                    cancelled = True
                    break
                future = executor.submit(self._analyze_resource, descriptor, context, stop, cancel_event)
                future_to_index[future] = index

            pending = set(future_to_index)
            while pending and not cancelled:
                wait_timeout = POLL_INTERVAL_SECONDS
                if deadline is not None:
                    wait_timeout = max(0.0, min(wait_timeout, deadline - time.monotonic()))
                done, pending = wait(pending, timeout=wait_timeout, return_when=FIRST_COMPLETED)

                for future in done:
                    if not self._record(future, future_to_index[future], inventory, outcomes, errors):
                        cancelled = True

                if pending and should_stop():
                    cancelled = True
        finally:
            if cancelled:
                logger.info("Analysis cancelled - no new resources will be started")
                stop.set()
                executor.shutdown(wait=False, cancel_futures=True)
            else:
                executor.shutdown(wait=True)

        # Every resource ends up in outcomes or errors; skipped and unstarted ones count as not analyzed
        for future, index in future_to_index.items():
            if index not in outcomes and index not in errors and future.done() and not future.cancelled():
                self._record(future, index, inventory, outcomes, errors)
        for index, descriptor in enumerate(inventory):
            if index not in outcomes and index not in errors:
                errors[index] = ResourceError(descriptor.resource_id, descriptor.kind, NOT_ANALYZED_MESSAGE)
                cancelled = True

        return self._assemble(inventory, outcomes, errors, now, cancelled)

    def _analyze_resource(
        self,
        descriptor: ResourceDescriptor,
        context: AnalysisContext,
        stop: threading.Event,
        cancel_event: threading.Event
    ):
        """Collect one resource's metrics and run its analyzer.

        Runs on a worker thread and touches no shared state.
        """
        if stop.is_set() or cancel_event.is_set():
            return _Skipped
        analyzer = self.get_analyzer(descriptor.kind)
        metrics = self._collect_metrics(descriptor, analyzer, context.now)
        return analyzer.analyze(descriptor, metrics, self.catalog, context)

    def _collect_metrics(
        self,
        descriptor: ResourceDescriptor,
        analyzer: BaseAnalyzer,
        now: datetime
    ) -> Dict[str, MetricSeries]:
        """Resolve an analyzer's metric queries through the provider.

        Raises:
            CollectionError: If the provider fails for any query
        """
        metrics: Dict[str, MetricSeries] = {}
        for query in analyzer.metric_queries(descriptor):
            window = TimeWindow.ending_at(now, query.lookback)
            try:
                metrics[query.metric_name] = self.metric_provider(
                    descriptor.resource_id, query.metric_name, window, query.period_seconds
                )
            except MissingDataError as e:
                logger.debug(f"No {query.metric_name} series for {descriptor.resource_id}: {e.message}")
            except Exception as e:
                raise CollectionError(
                    f"Metric collection failed for {query.metric_name}: {e}",
                    resource_id=descriptor.resource_id,
                    details=str(e)
                ) from e
        return metrics

    def _record(
        self,
        future: Future,
        index: int,
        inventory: List[ResourceDescriptor],
        outcomes: Dict[int, List[Recommendation]],
        errors: Dict[int, ResourceError]
    ) -> bool:
        """Store a finished future's outcome.

        Returns:
            False if the worker skipped the resource because the run was stopping
        """
        descriptor = inventory[index]
        try:
            result = future.result()
        except CollectionError as e:
            errors[index] = ResourceError(descriptor.resource_id, descriptor.kind, e.message)
            logger.warning(f"Collection failed for {descriptor.kind.value} {descriptor.resource_id}: {e.message}")
            return True
        except Exception as e:
            message = f"Analysis failed: {e}"
            errors[index] = ResourceError(descriptor.resource_id, descriptor.kind, message)
            logger.warning(f"Unexpected error analyzing {descriptor.kind.value} {descriptor.resource_id}: {e}")
            return True

        if result is _Skipped:
            return False
        outcomes[index] = list(result)
        if result:
            logger.info(f"Generated {len(result)} recommendations for {descriptor.kind.value} {descriptor.resource_id}")
        return True

    def _assemble(
        self,
        inventory: List[ResourceDescriptor],
        outcomes: Dict[int, List[Recommendation]],
        errors: Dict[int, ResourceError],
        now: datetime,
        cancelled: bool
    ) -> AnalysisResult:
        """Merge per-resource slots in inventory order."""
        by_kind: Dict[ResourceKind, List[Recommendation]] = {kind: [] for kind in ResourceKind}
        for index in range(len(inventory)):
            for recommendation in outcomes.get(index, []):
                by_kind[recommendation.kind].append(recommendation)

        total_monthly = round(sum(rec.monthly_savings for recs in by_kind.values() for rec in recs), 2)
        total_annual = round(sum(rec.annual_savings for recs in by_kind.values() for rec in recs), 2)
        resource_errors = [errors[index] for index in sorted(errors)]

        result = AnalysisResult(
            recommendations_by_kind=by_kind,
            total_monthly_savings=total_monthly,
            total_annual_savings=total_annual,
            resource_errors=resource_errors,
            generated_at=now,
            resources_analyzed=len(outcomes),
            cancelled=cancelled,
        )

        logger.info(
            f"Analysis complete: {result.recommendation_count} recommendations, "
            f"${total_monthly:,.2f}/month potential savings"
        )
        if resource_errors:
            logger.warning(f"{len(resource_errors)} resources could not be analyzed")
            for error in resource_errors:
                logger.warning(f"  - {error.kind.value} {error.resource_id}: {error.message}")

        return result

    def get_analysis_summary(self, result: AnalysisResult) -> Dict[str, Any]:
        """Summarize a result by kind and confidence for reporting."""
        by_kind = {}
        by_confidence = {}
        for recommendation in result.all_recommendations():
            kind_summary = by_kind.setdefault(recommendation.kind.value, {'count': 0, 'monthly_savings': 0.0})
            kind_summary['count'] += 1
            kind_summary['monthly_savings'] = round(kind_summary['monthly_savings'] + recommendation.monthly_savings, 2)
            by_confidence[recommendation.confidence.value] = by_confidence.get(recommendation.confidence.value, 0) + 1

        return {
            'resources_analyzed': result.resources_analyzed,
            'total_recommendations': result.recommendation_count,
            'total_monthly_savings': result.total_monthly_savings,
            'total_annual_savings': result.total_annual_savings,
            'by_kind': by_kind,
            'by_confidence': by_confidence,
            'failed_resources': [error.to_dict() for error in result.resource_errors],
            'cancelled': result.cancelled,
        }
