"""
Pytest configuration and shared fixtures for AWS Cost Optimizer tests.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from moto import mock_aws

from aws_cost_optimizer.analyzers.base import AnalysisContext
from aws_cost_optimizer.analyzers.models import MetricSeries, ResourceDescriptor
from aws_cost_optimizer.core.catalog import Catalog
from aws_cost_optimizer.core.config import AnalysisSettings


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for config files during tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def mock_aws_services():
    """Mock all AWS services used by the application."""
    with mock_aws():
        yield


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def settings():
    return AnalysisSettings()


@pytest.fixture(scope='session')
def catalog():
    """The catalog bundled with the package."""
    return Catalog.default()


@pytest.fixture(scope='session')
def t3_catalog(catalog):
    """Bundled catalog restricted to the x86 t3 family for compute shapes."""
    entries = {
        key: entry for key, entry in catalog.entries.items()
        if entry.kind != 'compute' or entry.family == 't3'
    }
    return Catalog(version=catalog.version, entries=entries, unit_prices=catalog.unit_prices)


@pytest.fixture
def make_series(now):
    """Build an hourly series ending at ``now`` from a list of values."""
    def _make(resource_id, metric_name, values, period_seconds=3600):
        values = list(values)
        start = now - timedelta(seconds=period_seconds * len(values))
        return MetricSeries.from_values(resource_id, metric_name, values, start, period_seconds)
    return _make


@pytest.fixture
def make_context(now):
    def _make(*inventory):
        return AnalysisContext(now=now, inventory=tuple(inventory))
    return _make


def descriptor(resource_id, kind, shape=None, tags=None, **attributes):
    """Shorthand for building resource descriptors in tests."""
    return ResourceDescriptor(
        resource_id=resource_id,
        kind=kind,
        shape=shape,
        attributes=attributes,
        tags=tags or {},
        region='us-east-1',
    )


@pytest.fixture
def make_descriptor():
    return descriptor

