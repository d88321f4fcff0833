"""
Data models for resource analysis.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


class ResourceKind(str, Enum):
    """Kinds of resources the engine knows how to analyze."""
    COMPUTE = 'compute'
    VOLUME = 'volume'
    BUCKET = 'bucket'
    LOAD_BALANCER = 'loadBalancer'
    ELASTIC_IP = 'elasticIp'
    DATABASE = 'database'
    CACHE_NODE = 'cacheNode'
    NAT_GATEWAY = 'natGateway'


class MetricName:
    """Provider-neutral names of the signals analyzers ask for."""
    CPU_UTILIZATION = 'cpu_utilization'
    MEMORY_UTILIZATION = 'memory_utilization'
    REQUEST_COUNT = 'request_count'
    PROCESSED_BYTES = 'processed_bytes'
    CONNECTION_COUNT = 'connection_count'
    READ_IOPS = 'read_iops'
    BYTES_OUT = 'bytes_out'
    NETWORK_BYTES_IN = 'network_bytes_in'
    CACHE_HITS = 'cache_hits'
    CACHE_MISSES = 'cache_misses'


class WorkloadPattern(str, Enum):
    STEADY = 'steady'
    PEAKY = 'peaky'
    DEV_TEST = 'devTest'
    UNKNOWN = 'unknown'


class PerformanceImpact(str, Enum):
    NONE = 'none'
    MINIMAL = 'minimal'
    MODERATE = 'moderate'
    SIGNIFICANT = 'significant'


class ConfidenceLevel(str, Enum):
    """How far a recommendation can be trusted, ordered high > medium > low."""
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def downgrade(self) -> 'ConfidenceLevel':
        """Return the next lower level; low stays low."""
        if self is ConfidenceLevel.HIGH:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW

    @classmethod
    def from_sample_count(cls, count: int, high_threshold: int, medium_threshold: int) -> 'ConfidenceLevel':
        """Derive a level from the number of samples backing a recommendation."""
        if count >= high_threshold:
            return cls.HIGH
        if count >= medium_threshold:
            return cls.MEDIUM
        return cls.LOW

    def __lt__(self, other):
        if not isinstance(other, ConfidenceLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, ConfidenceLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, ConfidenceLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, ConfidenceLevel):
            return NotImplemented
        return self.rank >= other.rank


_CONFIDENCE_RANK = {
    ConfidenceLevel.LOW: 0,
    ConfidenceLevel.MEDIUM: 1,
    ConfidenceLevel.HIGH: 2,
}


@dataclass(frozen=True)
class ResourceDescriptor:
    """Snapshot of one resource as supplied by the collection layer."""
    resource_id: str                    # Instance ID, allocation ID, bucket name, etc.
    kind: ResourceKind
    shape: Optional[str] = None         # Instance type, DB class, cache node type
    attributes: Dict[str, Any] = field(default_factory=dict)  # Kind-specific metadata
    created_at: Optional[datetime] = None
    region: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)

    def attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    @property
    def display_name(self) -> str:
        return self.tags.get('Name') or self.resource_id


@dataclass(frozen=True)
class MetricSample:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class TimeWindow:
    """Closed time range a metric series is fetched for."""
    start: datetime
    end: datetime

    @classmethod
    def ending_at(cls, end: datetime, lookback: timedelta) -> 'TimeWindow':
        return cls(start=end - lookback, end=end)

    @property
    def days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400


@dataclass(frozen=True)
class MetricQuery:
    """A series an analyzer needs for one resource."""
    metric_name: str
    lookback: timedelta
    period_seconds: int = 3600
    statistic: str = 'Average'


@dataclass(frozen=True)
class MetricSeries:
    """Time-ordered samples of one signal for one resource.

    An empty series means no data was available; every helper returns 0 in
    that case rather than raising.
    """
    resource_id: str
    metric_name: str
    period_seconds: int = 3600
    samples: Tuple[MetricSample, ...] = ()

    def __post_init__(self):
        ordered = tuple(sorted(self.samples, key=lambda s: s.timestamp))
        object.__setattr__(self, 'samples', ordered)

    @classmethod
    def from_values(
        cls,
        resource_id: str,
        metric_name: str,
        values: Iterable[float],
        start: datetime,
        period_seconds: int = 3600
    ) -> 'MetricSeries':
        """Build a series of evenly spaced samples beginning at ``start``."""
        samples = tuple(
            MetricSample(timestamp=start + timedelta(seconds=i * period_seconds), value=float(v))
            for i, v in enumerate(values)
        )
        return cls(resource_id=resource_id, metric_name=metric_name,
                   period_seconds=period_seconds, samples=samples)

    @property
    def values(self) -> List[float]:
        return [s.value for s in self.samples]

    @property
    def count(self) -> int:
        return len(self.samples)

    @property
    def is_empty(self) -> bool:
        return not self.samples

    def mean(self) -> float:
        if not self.samples:
            return 0.0
        return sum(s.value for s in self.samples) / len(self.samples)

    def maximum(self) -> float:
        if not self.samples:
            return 0.0
        return max(s.value for s in self.samples)

    def total(self) -> float:
        return sum(s.value for s in self.samples)


@dataclass(frozen=True)
class Recommendation:
    """One explainable cost-saving recommendation for one resource."""
    resource_id: str
    kind: ResourceKind
    recommendation_type: str            # 'rightsize', 'idle_database', 'unused_elastic_ip', ...
    confidence: ConfidenceLevel
    monthly_savings: float
    annual_savings: float
    performance_impact: PerformanceImpact
    reasoning: str
    current_shape: Optional[str] = None
    proposed_shape: Optional[str] = None
    action: Optional[str] = None
    workload_pattern: Optional[WorkloadPattern] = None
    monthly_cost: Optional[float] = None
    savings_percentage: Optional[float] = None
    warnings: Tuple[str, ...] = ()

    @classmethod
    def create(cls, monthly_savings: float, warnings: Iterable[str] = (), **kwargs) -> 'Recommendation':
        """Build a recommendation with savings rounded to cents and never negative."""
        monthly = round(max(monthly_savings, 0.0), 2)
        if kwargs.get('monthly_cost') is not None:
            kwargs['monthly_cost'] = round(kwargs['monthly_cost'], 2)
        if kwargs.get('savings_percentage') is not None:
            kwargs['savings_percentage'] = round(kwargs['savings_percentage'], 2)
        return cls(
            monthly_savings=monthly,
            annual_savings=round(monthly * 12, 2),
            warnings=tuple(warnings),
            **kwargs
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'resourceId': self.resource_id,
            'kind': self.kind.value,
            'recommendationType': self.recommendation_type,
            'currentShape': self.current_shape,
            'proposedShape': self.proposed_shape,
            'action': self.action,
            'confidence': self.confidence.value,
            'workloadPattern': self.workload_pattern.value if self.workload_pattern else None,
            'monthlyCost': self.monthly_cost,
            'monthlySavings': self.monthly_savings,
            'annualSavings': self.annual_savings,
            'savingsPercentage': self.savings_percentage,
            'performanceImpact': self.performance_impact.value,
            'reasoning': self.reasoning,
            'warnings': list(self.warnings),
        }


@dataclass(frozen=True)
class ResourceError:
    """A resource that could not be analyzed, and why."""
    resource_id: str
    kind: ResourceKind
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'resourceId': self.resource_id, 'kind': self.kind.value, 'message': self.message}


@dataclass
class AnalysisResult:
    """Everything one engine run produced."""
    recommendations_by_kind: Dict[ResourceKind, List[Recommendation]]
    total_monthly_savings: float
    total_annual_savings: float
    resource_errors: List[ResourceError]
    generated_at: datetime
    resources_analyzed: int = 0
    cancelled: bool = False

    def all_recommendations(self) -> List[Recommendation]:
        return [rec for kind in ResourceKind for rec in self.recommendations_by_kind.get(kind, [])]

    @property
    def recommendation_count(self) -> int:
        return sum(len(recs) for recs in self.recommendations_by_kind.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'generatedAt': self.generated_at.isoformat(),
            'resourcesAnalyzed': self.resources_analyzed,
            'cancelled': self.cancelled,
            'recommendationsByKind': {
                kind.value: [rec.to_dict() for rec in self.recommendations_by_kind.get(kind, [])]
                for kind in ResourceKind
            },
            'totalMonthlySavings': self.total_monthly_savings,
            'totalAnnualSavings': self.total_annual_savings,
            'resourceErrors': [error.to_dict() for error in self.resource_errors],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
