"""Tests for NAT gateway analysis."""

from datetime import datetime, timedelta, timezone

import pytest

from aws_cost_optimizer.analyzers.base import AnalysisContext
from aws_cost_optimizer.analyzers.models import (
    ConfidenceLevel,
    MetricName,
    MetricSeries,
    ResourceDescriptor,
    ResourceKind,
)
from aws_cost_optimizer.analyzers.nat_gateway import NatGatewayAnalyzer
from aws_cost_optimizer.core.catalog import Catalog


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
CATALOG = Catalog.default()
GIB = 1024 ** 3
ALL_ENDPOINTS = ['com.amazonaws.us-east-1.s3', 'com.amazonaws.us-east-1.dynamodb']


def _gateway(resource_id='nat-0a', subnet_id='subnet-a', endpoints=None, state='available'):
    return ResourceDescriptor(
        resource_id=resource_id,
        kind=ResourceKind.NAT_GATEWAY,
        attributes={
            'state': state,
            'vpc_id': 'vpc-1',
            'subnet_id': subnet_id,
            'vpc_endpoint_services': endpoints if endpoints is not None else [],
        },
    )


def _metrics(resource_id, bytes_per_hour, connections, hours=168):
    start = NOW - timedelta(hours=hours)
    return {
        MetricName.BYTES_OUT: MetricSeries.from_values(resource_id, MetricName.BYTES_OUT, [bytes_per_hour] * hours, start),
        MetricName.CONNECTION_COUNT: MetricSeries.from_values(
            resource_id, MetricName.CONNECTION_COUNT, [connections] * hours, start
        ),
    }


class TestNatGatewayAnalyzer:
    """The three independent NAT checks."""

    def test_idle_gateway(self):
        gateway = _gateway(endpoints=ALL_ENDPOINTS)
        context = AnalysisContext(now=NOW, inventory=(gateway,))

        recommendations = NatGatewayAnalyzer().analyze(gateway, _metrics('nat-0a', 1e6, 2.0), CATALOG, context)

        assert [r.recommendation_type for r in recommendations] == ['idle_nat_gateway']
        assert recommendations[0].confidence == ConfidenceLevel.HIGH
        assert recommendations[0].monthly_savings == pytest.approx(45.03)

    def test_missing_endpoints_on_busy_gateway(self):
        gateway = _gateway()
        context = AnalysisContext(now=NOW, inventory=(gateway,))
        # 100 GB per day
        metrics = _metrics('nat-0a', 700 * GIB / 168, 500.0)

        recommendations = NatGatewayAnalyzer().analyze(gateway, metrics, CATALOG, context)
        by_type = {r.recommendation_type: r for r in recommendations}

        assert list(by_type) == ['add_s3_vpc_endpoint', 'add_dynamodb_vpc_endpoint']
        assert by_type['add_s3_vpc_endpoint'].monthly_savings == pytest.approx(40.5)
        assert by_type['add_s3_vpc_endpoint'].confidence == ConfidenceLevel.MEDIUM
        assert by_type['add_dynamodb_vpc_endpoint'].monthly_savings == pytest.approx(13.5)
        assert by_type['add_dynamodb_vpc_endpoint'].confidence == ConfidenceLevel.LOW
        assert by_type['add_s3_vpc_endpoint'].monthly_cost == pytest.approx(180.0)

    def test_existing_s3_endpoint_suppresses_recommendation(self):
        gateway = _gateway(endpoints=['com.amazonaws.us-east-1.s3'])
        context = AnalysisContext(now=NOW, inventory=(gateway,))

        recommendations = NatGatewayAnalyzer().analyze(
            gateway, _metrics('nat-0a', 700 * GIB / 168, 500.0), CATALOG, context
        )

        assert [r.recommendation_type for r in recommendations] == ['add_dynamodb_vpc_endpoint']

    def test_only_extra_gateways_in_a_subnet_are_duplicates(self):
        first = _gateway('nat-0a', endpoints=ALL_ENDPOINTS)
        second = _gateway('nat-0b', endpoints=ALL_ENDPOINTS)
        third = _gateway('nat-0c', endpoints=ALL_ENDPOINTS)
        elsewhere = _gateway('nat-0d', subnet_id='subnet-b', endpoints=ALL_ENDPOINTS)
        context = AnalysisContext(now=NOW, inventory=(third, first, elsewhere, second))
        analyzer = NatGatewayAnalyzer()

        flagged = [
            gateway.resource_id for gateway in (first, second, third, elsewhere)
            if analyzer.analyze(gateway, {}, CATALOG, context)
        ]

        assert flagged == ['nat-0b', 'nat-0c']
        rec = analyzer.analyze(second, {}, CATALOG, context)[0]
        assert rec.recommendation_type == 'duplicate_nat_gateway'
        assert rec.monthly_savings == 45.0

    def test_unavailable_peer_is_not_counted(self):
        live = _gateway('nat-0b', endpoints=ALL_ENDPOINTS)
        deleting = _gateway('nat-0a', endpoints=ALL_ENDPOINTS, state='deleting')
        context = AnalysisContext(now=NOW, inventory=(deleting, live))

        assert NatGatewayAnalyzer().analyze(live, {}, CATALOG, context) == []
