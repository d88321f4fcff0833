"""Resource analyzers and the orchestrator that runs them."""

from .base import AnalysisContext, BaseAnalyzer
from .models import (
    AnalysisResult,
    ConfidenceLevel,
    MetricName,
    MetricSeries,
    PerformanceImpact,
    Recommendation,
    ResourceDescriptor,
    ResourceError,
    ResourceKind,
    TimeWindow,
    WorkloadPattern,
)
from .classifier import classify_workload
from .compute import ComputeAnalyzer
from .volume import VolumeAnalyzer
from .bucket import BucketAnalyzer
from .load_balancer import LoadBalancerAnalyzer
from .elastic_ip import ElasticIpAnalyzer
from .database import DatabaseAnalyzer
from .cache import CacheAnalyzer
from .nat_gateway import NatGatewayAnalyzer
from .orchestrator import AnalysisOrchestrator

__all__ = [
    'AnalysisContext',
    'BaseAnalyzer',
    'AnalysisResult',
    'ConfidenceLevel',
    'MetricName',
    'MetricSeries',
    'PerformanceImpact',
    'Recommendation',
    'ResourceDescriptor',
    'ResourceError',
    'ResourceKind',
    'TimeWindow',
    'WorkloadPattern',
    'classify_workload',
    'ComputeAnalyzer',
    'VolumeAnalyzer',
    'BucketAnalyzer',
    'LoadBalancerAnalyzer',
    'ElasticIpAnalyzer',
    'DatabaseAnalyzer',
    'CacheAnalyzer',
    'NatGatewayAnalyzer',
    'AnalysisOrchestrator',
]
