"""Property-based tests for configuration management."""

import json
import tempfile
from datetime import datetime
from pathlib import Path

import pytest
from hypothesis import given, strategies as st

from aws_cost_optimizer.core.config import AnalysisSettings, Config, ConfigManager


@st.composite
def valid_aws_region(draw):
    """Generate valid AWS region names."""
    region_prefix = draw(st.sampled_from(['us', 'eu', 'ap', 'ca', 'sa']))
    region_middle = draw(st.sampled_from(['east', 'west', 'north', 'south', 'central', 'southeast', 'northeast']))
    region_suffix = draw(st.integers(min_value=1, max_value=9))
    return f"{region_prefix}-{region_middle}-{region_suffix}"


@st.composite
def valid_settings(draw):
    """Generate analyzer settings with in-range thresholds."""
    return AnalysisSettings(
        target_cpu_utilization=draw(st.floats(min_value=10, max_value=100)),
        target_memory_utilization=draw(st.floats(min_value=10, max_value=100)),
        no_agent_memory_factor=draw(st.floats(min_value=0.1, max_value=1.0)),
        dev_test_idle_fraction=draw(st.floats(min_value=0.1, max_value=1.0)),
        max_objects_sampled=draw(st.integers(min_value=1, max_value=5000)),
    )


@st.composite
def valid_config(draw):
    """Generate valid Config objects."""
    return Config(
        default_region=draw(valid_aws_region()),
        max_workers=draw(st.integers(min_value=1, max_value=64)),
        timeout_seconds=draw(st.one_of(st.none(), st.floats(min_value=0.1, max_value=3600))),
        catalog_path=draw(st.one_of(st.none(), st.just('/etc/aws-cost-optimizer/catalog.json'))),
        settings=draw(valid_settings()),
        created_at=draw(st.datetimes(min_value=datetime(2020, 1, 1), max_value=datetime(2030, 12, 31))).replace(tzinfo=None),
        version=draw(st.text(min_size=1, max_size=20).filter(lambda x: x.strip()))
    )


class TestConfigurationRoundTrip:
    """Property-based tests for configuration persistence."""

    @given(config=valid_config())
    def test_config_save_load_round_trip(self, config):
        """Saving then loading a configuration yields an equivalent object."""
        with tempfile.TemporaryDirectory() as temp_dir:
            config_manager = ConfigManager(config_dir=Path(temp_dir))

            config_manager.save_config(config)
            loaded_config = config_manager.load_config()

            assert loaded_config is not None
            assert loaded_config.default_region == config.default_region
            assert loaded_config.max_workers == config.max_workers
            assert loaded_config.timeout_seconds == config.timeout_seconds
            assert loaded_config.catalog_path == config.catalog_path
            assert loaded_config.settings == config.settings
            assert loaded_config.version == config.version

            time_diff = abs((loaded_config.created_at - config.created_at).total_seconds())
            assert time_diff < 1.0

    @given(config=valid_config())
    def test_config_delete_removes_file(self, config):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_manager = ConfigManager(config_dir=Path(temp_dir))

            assert not config_manager.config_exists()
            config_manager.save_config(config)
            assert config_manager.config_exists()

            config_manager.delete_config()

            assert not config_manager.config_exists()
            assert not config_manager.get_config_path().exists()


class TestConfigValidation:
    """Unit tests for configuration validation."""

    def test_invalid_region_format(self):
        invalid_regions = [
            "invalid-region",
            "us-east",  # Missing number
            "us_east_1",  # Wrong separator
        ]

        for invalid_region in invalid_regions:
            with pytest.raises(ValueError, match="Invalid AWS region format"):
                Config(default_region=invalid_region)

    @pytest.mark.parametrize('region', ['us-east-1', 'ap-southeast-3', 'il-central-1', 'us-east-10', 'usa-east-1'])
    def test_valid_region_formats(self, region):
        assert Config(default_region=region).default_region == region

    @pytest.mark.parametrize('max_workers', [0, -1, 65, 1000])
    def test_unbounded_worker_counts_are_rejected(self, max_workers):
        with pytest.raises(ValueError, match="Invalid max_workers"):
            Config(max_workers=max_workers)

    def test_non_positive_timeout_is_rejected(self):
        with pytest.raises(ValueError, match="Invalid timeout_seconds"):
            Config(timeout_seconds=0)

    @pytest.mark.parametrize('field', [
        'no_agent_memory_factor', 'ia_eligible_fraction', 'nat_s3_traffic_fraction',
        'database_auto_stop_savings_fraction', 'cache_multi_az_savings_fraction',
        'load_balancer_unhealthy_savings_fraction',
    ])
    @pytest.mark.parametrize('value', [0, -0.2, 1.5])
    def test_fractions_must_be_in_unit_interval(self, field, value):
        with pytest.raises(ValueError, match="Invalid fraction"):
            AnalysisSettings(**{field: value})

    @pytest.mark.parametrize('field', [
        'target_cpu_utilization', 'peak_cpu_headroom', 'target_memory_utilization',
        'database_idle_max_cpu', 'cache_low_hit_rate',
    ])
    def test_percentages_must_be_in_range(self, field):
        with pytest.raises(ValueError, match="Invalid utilization percentage"):
            AnalysisSettings(**{field: 120})

    def test_defaults(self):
        config = Config()

        assert config.default_region == "us-east-1"
        assert config.max_workers == 8
        assert config.timeout_seconds is None
        assert config.settings.target_cpu_utilization == 70
        assert config.settings.no_agent_memory_factor == 0.5
        assert config.settings.max_objects_sampled == 1000
        assert isinstance(config.created_at, datetime)


class TestConfigManagerEdgeCases:
    """Unit tests for configuration manager edge cases."""

    def test_load_nonexistent_config(self, temp_config_dir):
        config_manager = ConfigManager(config_dir=temp_config_dir)

        assert config_manager.load_config() is None
        assert config_manager.load_or_default().default_region == "us-east-1"

    def test_load_corrupted_config(self, temp_config_dir):
        config_manager = ConfigManager(config_dir=temp_config_dir)

        with open(config_manager.get_config_path(), 'w') as f:
            f.write("invalid json content")

        with pytest.raises(ValueError, match="Invalid configuration file"):
            config_manager.load_config()

    def test_partial_settings_override_defaults(self, temp_config_dir):
        config_manager = ConfigManager(config_dir=temp_config_dir)
        with open(config_manager.get_config_path(), 'w') as f:
            json.dump({'default_region': 'eu-west-1', 'settings': {'target_cpu_utilization': 60}}, f)

        config = config_manager.load_config()

        assert config.default_region == 'eu-west-1'
        assert config.settings.target_cpu_utilization == 60
        assert config.settings.peak_cpu_headroom == 90

    def test_config_directory_creation(self, temp_config_dir):
        config_dir = temp_config_dir / "nested" / "config" / "dir"
        ConfigManager(config_dir=config_dir)

        assert config_dir.exists()
        assert config_dir.is_dir()
