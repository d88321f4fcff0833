"""Tests for bucket storage tiering analysis."""

from datetime import datetime, timedelta, timezone

import pytest

from aws_cost_optimizer.analyzers.base import AnalysisContext
from aws_cost_optimizer.analyzers.bucket import BucketAnalyzer, storage_class_group
from aws_cost_optimizer.analyzers.models import ConfidenceLevel, ResourceDescriptor, ResourceKind
from aws_cost_optimizer.core.catalog import Catalog
from aws_cost_optimizer.core.config import AnalysisSettings


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
CONTEXT = AnalysisContext(now=NOW)
CATALOG = Catalog.default()
GIB = 1024 ** 3


def _objects(count, size=GIB, age_days=10, storage_class='STANDARD'):
    return [
        {'size': size, 'storage_class': storage_class, 'last_modified': NOW - timedelta(days=age_days)}
        for _ in range(count)
    ]


def _bucket(objects, name='analytics-exports', has_lifecycle_policy=False):
    return ResourceDescriptor(
        resource_id=name,
        kind=ResourceKind.BUCKET,
        attributes={'objects': objects, 'has_lifecycle_policy': has_lifecycle_policy},
    )


class TestStorageClassGroup:
    @pytest.mark.parametrize('storage_class,group', [
        ('STANDARD', 'standard'),
        (None, 'standard'),
        ('STANDARD_IA', 'ia'),
        ('ONEZONE_IA', 'ia'),
        ('GLACIER', 'glacier'),
        ('GLACIER_IR', 'glacier'),
        ('DEEP_ARCHIVE', 'glacier'),
        ('INTELLIGENT_TIERING', None),
    ])
    def test_groups(self, storage_class, group):
        assert storage_class_group(storage_class) == group


class TestBucketAnalyzer:
    """Lifecycle and Standard-IA checks over the object sample."""

    def test_old_objects_without_lifecycle_policy(self):
        objects = _objects(5, size=1024, age_days=200) + _objects(5, size=1024, age_days=5)

        recommendations = BucketAnalyzer().analyze(_bucket(objects), {}, CATALOG, CONTEXT)

        assert [r.recommendation_type for r in recommendations] == ['lifecycle_policy']
        assert recommendations[0].monthly_savings == 0.0
        assert recommendations[0].confidence == ConfidenceLevel.MEDIUM

    def test_existing_lifecycle_policy_suppresses_recommendation(self):
        objects = _objects(10, size=1024, age_days=200)

        assert BucketAnalyzer().analyze(_bucket(objects, has_lifecycle_policy=True), {}, CATALOG, CONTEXT) == []

    def test_large_standard_volume_moves_to_infrequent_access(self):
        bucket = _bucket(_objects(500, size=2 * GIB), has_lifecycle_policy=True)

        recommendations = BucketAnalyzer().analyze(bucket, {}, CATALOG, CONTEXT)

        assert [r.recommendation_type for r in recommendations] == ['storage_class_optimization']
        assert recommendations[0].monthly_savings == pytest.approx(3.15)
        assert recommendations[0].monthly_cost == pytest.approx(23.0)
        assert "of the 1000.0 GB sampled" in recommendations[0].reasoning

    def test_savings_below_floor_are_not_reported(self):
        bucket = _bucket(_objects(100, size=GIB), has_lifecycle_policy=True)

        assert BucketAnalyzer().analyze(bucket, {}, CATALOG, CONTEXT) == []

    def test_sample_is_capped(self):
        bucket = _bucket(_objects(1500, size=2 * GIB), has_lifecycle_policy=True)

        rec = BucketAnalyzer().analyze(bucket, {}, CATALOG, CONTEXT)[0]

        assert rec.monthly_savings == pytest.approx(6.3)

    def test_empty_objects_do_not_use_up_the_sample(self):
        analyzer = BucketAnalyzer(AnalysisSettings(max_objects_sampled=5))
        objects = _objects(10, size=0) + _objects(5, size=1024)

        summary = analyzer.summarize_objects(objects, NOW)

        assert summary.object_count == 5
        assert summary.truncated is False

        summary = analyzer.summarize_objects(objects + _objects(3, size=1024), NOW)

        assert summary.object_count == 5
        assert summary.truncated is True

    def test_summary_ages_and_skips_empty_objects(self):
        objects = (
            _objects(2, size=10, age_days=5)
            + _objects(3, size=10, age_days=45)
            + _objects(4, size=10, age_days=120)
            + _objects(6, size=0, age_days=400)
        )

        summary = BucketAnalyzer().summarize_objects(objects, NOW)

        assert summary.object_count == 9
        assert (summary.recent, summary.medium, summary.old) == (2, 3, 4)
        assert summary.old_fraction == pytest.approx(4 / 9)

    def test_iso_timestamps_are_accepted(self):
        objects = [{'size': 100, 'storage_class': 'STANDARD', 'last_modified': '2023-01-01T00:00:00Z'}]

        summary = BucketAnalyzer().summarize_objects(objects, NOW)

        assert summary.old == 1

    @pytest.mark.parametrize('name', ['cost-optimizer-reports', 'acme-cloudformation-templates'])
    def test_infrastructure_buckets_are_skipped(self, name):
        objects = _objects(10, size=1024, age_days=200)

        assert BucketAnalyzer().analyze(_bucket(objects, name=name), {}, CATALOG, CONTEXT) == []
