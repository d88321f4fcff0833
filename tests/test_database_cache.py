"""Tests for database and cache cluster analysis."""

from datetime import datetime, timedelta, timezone

import pytest

from aws_cost_optimizer.analyzers.base import AnalysisContext, detect_environment
from aws_cost_optimizer.analyzers.cache import CacheAnalyzer
from aws_cost_optimizer.analyzers.database import DatabaseAnalyzer
from aws_cost_optimizer.analyzers.models import (
    ConfidenceLevel,
    MetricName,
    MetricSeries,
    ResourceDescriptor,
    ResourceKind,
)
from aws_cost_optimizer.core.catalog import Catalog
from aws_cost_optimizer.core.config import AnalysisSettings


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
CONTEXT = AnalysisContext(now=NOW)
CATALOG = Catalog.default()


def _metrics(resource_id, **series):
    """Hourly series over the last week keyed by metric name."""
    metrics = {}
    for name, values in series.items():
        start = NOW - timedelta(hours=len(values))
        metrics[name] = MetricSeries.from_values(resource_id, name, values, start)
    return metrics


def _database(resource_id='orders-db', shape='db.t3.medium', multi_az=False, tags=None):
    return ResourceDescriptor(
        resource_id=resource_id,
        kind=ResourceKind.DATABASE,
        shape=shape,
        attributes={'engine': 'postgres', 'multi_az': multi_az},
        tags=tags or {},
    )


class TestDetectEnvironment:
    @pytest.mark.parametrize('resource_id,expected', [
        ('dev-reporting-db', 'development'),
        ('orders-staging', 'test'),
        ('qa-test-cache', 'test'),
        ('orders-db', 'production'),
    ])
    def test_name_based_detection(self, resource_id, expected):
        assert detect_environment(_database(resource_id=resource_id)) == expected

    def test_environment_tag_wins_over_name(self):
        db = _database(resource_id='dev-orders', tags={'Environment': 'production'})

        assert detect_environment(db) == 'production'


class TestDatabaseAnalyzer:
    """Idle, downsize and environment checks."""

    def test_idle_database(self):
        metrics = _metrics('orders-db', **{
            MetricName.CONNECTION_COUNT: [0.0] * 168,
            MetricName.CPU_UTILIZATION: [2.0] * 168,
            MetricName.READ_IOPS: [1.0] * 168,
        })

        recommendations = DatabaseAnalyzer().analyze(_database(), metrics, CATALOG, CONTEXT)

        assert [r.recommendation_type for r in recommendations] == ['idle_database']
        assert recommendations[0].confidence == ConfidenceLevel.HIGH
        assert recommendations[0].monthly_savings == pytest.approx(49.64)

    def test_busy_reads_are_not_idle(self):
        metrics = _metrics('orders-db', **{
            MetricName.CONNECTION_COUNT: [0.0] * 168,
            MetricName.CPU_UTILIZATION: [2.0] * 168,
            MetricName.READ_IOPS: [500.0] * 168,
        })

        recommendations = DatabaseAnalyzer().analyze(_database(), metrics, CATALOG, CONTEXT)

        assert 'idle_database' not in [r.recommendation_type for r in recommendations]

    def test_oversized_database(self):
        metrics = _metrics('orders-db', **{
            MetricName.CONNECTION_COUNT: [5.0] * 168,
            MetricName.CPU_UTILIZATION: [30.0] + [10.0] * 167,
        })

        recommendations = DatabaseAnalyzer().analyze(_database(), metrics, CATALOG, CONTEXT)

        assert [r.recommendation_type for r in recommendations] == ['downsize_database']
        assert recommendations[0].monthly_savings == pytest.approx(24.82)

    def test_development_multi_az_database_gets_every_check(self):
        db = _database(resource_id='dev-reporting-db', multi_az=True)
        metrics = _metrics(db.resource_id, **{
            MetricName.CONNECTION_COUNT: [5.0] * 168,
            MetricName.CPU_UTILIZATION: [30.0] + [10.0] * 167,
        })

        recommendations = DatabaseAnalyzer().analyze(db, metrics, CATALOG, CONTEXT)
        by_type = {r.recommendation_type: r for r in recommendations}

        assert list(by_type) == ['downsize_database', 'disable_multi_az', 'schedule_auto_stop']
        assert by_type['downsize_database'].monthly_cost == pytest.approx(99.28)
        assert by_type['disable_multi_az'].monthly_savings == pytest.approx(49.64)
        assert by_type['schedule_auto_stop'].monthly_savings == pytest.approx(64.53)

    def test_missing_metrics_skip_usage_checks(self):
        assert DatabaseAnalyzer().analyze(_database(), {}, CATALOG, CONTEXT) == []

    def test_unknown_instance_class_is_skipped(self):
        assert DatabaseAnalyzer().analyze(_database(shape='db.x9.huge'), {}, CATALOG, CONTEXT) == []

    def test_thresholds_and_fractions_come_from_settings(self):
        metrics = _metrics('orders-db', **{
            MetricName.CONNECTION_COUNT: [5.0] * 168,
            MetricName.CPU_UTILIZATION: [30.0] + [10.0] * 167,
        })
        strict = DatabaseAnalyzer(AnalysisSettings(database_oversized_max_avg_cpu=5))
        generous = DatabaseAnalyzer(AnalysisSettings(database_downsize_savings_fraction=0.25))

        assert strict.analyze(_database(), metrics, CATALOG, CONTEXT) == []
        assert generous.analyze(_database(), metrics, CATALOG, CONTEXT)[0].monthly_savings == pytest.approx(12.41)


def _cache(resource_id='sessions', shape='cache.t3.medium', engine='redis', num_nodes=2, multi_az=False):
    return ResourceDescriptor(
        resource_id=resource_id,
        kind=ResourceKind.CACHE_NODE,
        shape=shape,
        attributes={'engine': engine, 'num_nodes': num_nodes, 'multi_az': multi_az},
    )


class TestCacheAnalyzer:
    """Idle, downsize, hit rate and multi-AZ checks."""

    def test_idle_cluster(self):
        metrics = _metrics('sessions', **{
            MetricName.CPU_UTILIZATION: [2.0] * 168,
            MetricName.CONNECTION_COUNT: [1.0] * 168,
        })

        recommendations = CacheAnalyzer().analyze(_cache(), metrics, CATALOG, CONTEXT)

        assert [r.recommendation_type for r in recommendations] == ['idle_cache_cluster']
        assert recommendations[0].monthly_savings == pytest.approx(99.28)
        assert recommendations[0].confidence == ConfidenceLevel.HIGH

    def test_idle_without_connection_metric_uses_network_bytes(self):
        metrics = _metrics('sessions', **{
            MetricName.CPU_UTILIZATION: [2.0] * 168,
            MetricName.NETWORK_BYTES_IN: [1000.0] * 168,
        })

        recommendations = CacheAnalyzer().analyze(_cache(engine='memcached'), metrics, CATALOG, CONTEXT)

        assert recommendations[0].recommendation_type == 'idle_cache_cluster'

    def test_oversized_cluster(self):
        metrics = _metrics('sessions', **{
            MetricName.CPU_UTILIZATION: [30.0] + [10.0] * 167,
            MetricName.CONNECTION_COUNT: [150.0] * 168,
            MetricName.MEMORY_UTILIZATION: [30.0] * 168,
        })

        recommendations = CacheAnalyzer().analyze(_cache(), metrics, CATALOG, CONTEXT)

        assert [r.recommendation_type for r in recommendations] == ['downsize_cache_node']
        assert recommendations[0].monthly_savings == pytest.approx(49.64)

    def test_memcached_low_hit_rate(self):
        metrics = _metrics('sessions', **{
            MetricName.CPU_UTILIZATION: [50.0] * 168,
            MetricName.CONNECTION_COUNT: [200.0] * 168,
            MetricName.CACHE_HITS: [30.0] * 168,
            MetricName.CACHE_MISSES: [30.0] * 168,
        })

        recommendations = CacheAnalyzer().analyze(_cache(engine='memcached'), metrics, CATALOG, CONTEXT)

        assert [r.recommendation_type for r in recommendations] == ['low_cache_hit_rate']
        assert recommendations[0].confidence == ConfidenceLevel.LOW

    def test_low_traffic_multi_az(self):
        metrics = _metrics('sessions', **{
            MetricName.CPU_UTILIZATION: [50.0] * 168,
            MetricName.CONNECTION_COUNT: [50.0] * 168,
        })

        recommendations = CacheAnalyzer().analyze(_cache(multi_az=True), metrics, CATALOG, CONTEXT)

        assert [r.recommendation_type for r in recommendations] == ['disable_multi_az']
        assert recommendations[0].monthly_savings == pytest.approx(29.78)

    def test_memcached_queries_hit_counters(self):
        names = [q.metric_name for q in CacheAnalyzer().metric_queries(_cache(engine='memcached'))]

        assert MetricName.CACHE_HITS in names and MetricName.CACHE_MISSES in names

    def test_unknown_node_type_is_skipped(self):
        assert CacheAnalyzer().analyze(_cache(shape='cache.x9.huge'), {}, CATALOG, CONTEXT) == []

    def test_multi_az_thresholds_come_from_settings(self):
        metrics = _metrics('sessions', **{
            MetricName.CPU_UTILIZATION: [50.0] * 168,
            MetricName.CONNECTION_COUNT: [50.0] * 168,
        })
        quiet_floor = CacheAnalyzer(AnalysisSettings(cache_low_traffic_connections=10))
        larger_share = CacheAnalyzer(AnalysisSettings(cache_multi_az_savings_fraction=0.5))

        assert quiet_floor.analyze(_cache(multi_az=True), metrics, CATALOG, CONTEXT) == []
        rec = larger_share.analyze(_cache(multi_az=True), metrics, CATALOG, CONTEXT)[0]
        assert rec.monthly_savings == pytest.approx(49.64)
