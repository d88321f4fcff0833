"""Configuration management for AWS Cost Optimizer."""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class AnalysisSettings(BaseModel):
    """Tunable thresholds used by the analyzers.

    The defaults are empirically chosen and meant to be validated against
    real fleets, so every one of them can be overridden from the config file.
    """

    # Compute rightsizing
    target_cpu_utilization: float = Field(default=70.0, description="Target average CPU % after rightsizing")
    peak_cpu_headroom: float = Field(default=90.0, description="Highest acceptable peak CPU % after rightsizing")
    target_memory_utilization: float = Field(default=80.0, description="Target average memory % after rightsizing")
    no_agent_memory_factor: float = Field(default=0.5, description="Fraction of current memory required when no memory signal exists")
    well_utilized_mean_cpu: float = Field(default=50.0, description="Mean CPU % above which an instance may be well utilized")
    well_utilized_max_cpu: float = Field(default=80.0, description="Max CPU % above which an instance may be well utilized")
    max_overprovision_penalty: float = Field(default=2.0, description="Largest acceptable over-provisioning penalty for a candidate")
    overprovision_weight: float = Field(default=0.01, description="Weight of the over-provisioning penalty in candidate ranking")
    high_confidence_samples: int = Field(default=1440, description="Hourly samples needed for high confidence (~60 days)")
    medium_confidence_samples: int = Field(default=480, description="Hourly samples needed for medium confidence (~20 days)")
    compute_lookback_days: int = Field(default=90, description="Days of compute metrics to analyze")

    # Workload classification
    idle_cpu_threshold: float = Field(default=5.0, description="CPU % below which a sample counts as idle")
    dev_test_idle_fraction: float = Field(default=0.7, description="Idle fraction above which a workload is dev/test")
    peaky_variation: float = Field(default=1.0, description="Coefficient of variation above which a workload is peaky")
    peaky_swing: float = Field(default=50.0, description="Max-min CPU swing (percentage points) above which a workload is peaky")
    steady_variation: float = Field(default=0.5, description="Coefficient of variation below which a workload may be steady")
    steady_min_cpu: float = Field(default=10.0, description="Mean CPU % above which a low-variance workload is steady")

    # Idle resource detection
    usage_lookback_days: int = Field(default=7, description="Days of metrics used by idle detectors")
    load_balancer_min_hours: int = Field(default=24, description="Hours of data needed to trust a load balancer verdict")
    load_balancer_low_traffic_hours: int = Field(default=48, description="Hours of data needed for a low-traffic verdict")
    load_balancer_low_traffic_requests: float = Field(default=100.0, description="Requests per window considered low traffic")
    nat_idle_connections: float = Field(default=10.0, description="Average connections below which a NAT gateway is idle")
    nat_idle_daily_gb: float = Field(default=1.0, description="Daily GB below which a NAT gateway is idle")
    nat_s3_traffic_fraction: float = Field(default=0.3, description="Share of NAT traffic assumed to be S3")
    nat_dynamodb_traffic_fraction: float = Field(default=0.1, description="Share of NAT traffic assumed to be DynamoDB")
    load_balancer_unhealthy_savings_fraction: float = Field(default=0.8, description="Share of cost saved by removing a load balancer with no healthy targets")
    load_balancer_low_traffic_savings_fraction: float = Field(default=0.5, description="Share of cost saved by consolidating a low-traffic load balancer")

    # Databases
    database_idle_max_connections: float = Field(default=1.0, description="Average connections below which a database is idle")
    database_idle_max_cpu: float = Field(default=5.0, description="Average CPU % below which a database is idle")
    database_idle_max_read_iops: float = Field(default=10.0, description="Average read IOPS below which a database is idle")
    database_oversized_max_avg_cpu: float = Field(default=20.0, description="Average CPU % below which a database is oversized")
    database_oversized_max_peak_cpu: float = Field(default=40.0, description="Peak CPU % below which a database is oversized")
    database_downsize_savings_fraction: float = Field(default=0.5, description="Share of cost saved by one instance class step down")
    database_multi_az_savings_fraction: float = Field(default=0.5, description="Share of cost saved by dropping the standby")
    database_auto_stop_savings_fraction: float = Field(default=0.65, description="Share of cost saved by stopping nights and weekends")

    # Caches
    cache_idle_max_cpu: float = Field(default=5.0, description="Average CPU % below which a cache cluster may be idle")
    cache_idle_max_connections: float = Field(default=5.0, description="Average connections below which a cache cluster is idle")
    cache_idle_max_bytes_in: float = Field(default=100 * 1024 * 1024, description="Inbound bytes per window below which a connectionless cluster is idle")
    cache_oversized_max_avg_cpu: float = Field(default=20.0, description="Average CPU % below which a cache node is oversized")
    cache_oversized_max_peak_cpu: float = Field(default=40.0, description="Peak CPU % below which a cache node is oversized")
    cache_oversized_max_memory: float = Field(default=50.0, description="Memory % below which a cache node is oversized")
    cache_low_hit_rate: float = Field(default=80.0, description="Hit rate % below which caching is questioned")
    cache_min_hits_for_hit_rate: int = Field(default=1000, description="Hits needed before the hit rate is judged")
    cache_low_traffic_connections: float = Field(default=100.0, description="Average connections below which multi-AZ is questioned")
    cache_downsize_savings_fraction: float = Field(default=0.5, description="Share of cost saved by one node type step down")
    cache_hit_rate_savings_fraction: float = Field(default=0.5, description="Share of cost at stake for an ineffective cache")
    cache_multi_az_savings_fraction: float = Field(default=0.3, description="Share of cost saved by dropping replicas")

    # Object storage
    max_objects_sampled: int = Field(default=1000, description="Objects sampled per bucket")
    lifecycle_old_fraction: float = Field(default=0.2, description="Share of >90 day objects that warrants a lifecycle policy")
    standard_min_gib: float = Field(default=1.0, description="Standard-class GiB below which no transition is suggested")
    ia_eligible_fraction: float = Field(default=0.3, description="Share of Standard data assumed eligible for Standard-IA")
    min_monthly_savings: float = Field(default=1.0, description="Smallest monthly saving worth reporting for storage tiering")

    @field_validator(
        'no_agent_memory_factor', 'dev_test_idle_fraction', 'lifecycle_old_fraction',
        'ia_eligible_fraction', 'nat_s3_traffic_fraction', 'nat_dynamodb_traffic_fraction',
        'load_balancer_unhealthy_savings_fraction', 'load_balancer_low_traffic_savings_fraction',
        'database_downsize_savings_fraction', 'database_multi_az_savings_fraction',
        'database_auto_stop_savings_fraction', 'cache_downsize_savings_fraction',
        'cache_hit_rate_savings_fraction', 'cache_multi_az_savings_fraction'
    )
    @classmethod
    def validate_fraction(cls, v: float) -> float:
        """Fractions must lie in (0, 1]."""
        if not 0 < v <= 1:
            raise ValueError(f"Invalid fraction: {v}. Expected a value in (0, 1]")
        return v

    @field_validator(
        'target_cpu_utilization', 'peak_cpu_headroom', 'target_memory_utilization',
        'well_utilized_mean_cpu', 'well_utilized_max_cpu', 'database_idle_max_cpu',
        'database_oversized_max_avg_cpu', 'database_oversized_max_peak_cpu', 'cache_idle_max_cpu',
        'cache_oversized_max_avg_cpu', 'cache_oversized_max_peak_cpu', 'cache_oversized_max_memory',
        'cache_low_hit_rate'
    )
    @classmethod
    def validate_percentage(cls, v: float) -> float:
        """Utilization targets must lie in (0, 100]."""
        if not 0 < v <= 100:
            raise ValueError(f"Invalid utilization percentage: {v}. Expected a value in (0, 100]")
        return v


class Config(BaseModel):
    """Configuration model for AWS Cost Optimizer."""

    default_region: str = Field(default="us-east-1", description="Default AWS region")
    max_workers: int = Field(default=8, description="Maximum concurrent per-resource analyses")
    timeout_seconds: Optional[float] = Field(default=None, description="Time limit for a whole analysis run")
    catalog_path: Optional[str] = Field(default=None, description="Path to a catalog JSON file overriding the bundled one")
    settings: AnalysisSettings = Field(default_factory=AnalysisSettings, description="Analyzer thresholds")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Configuration creation timestamp")
    version: str = Field(default="1.0.0", description="Configuration version")

    @field_validator('default_region')
    @classmethod
    def validate_region(cls, v: str) -> str:
        """Validate AWS region format."""
        region_pattern = r'^[a-z]{2,3}-[a-z]+-\d+$'
        if not re.match(region_pattern, v):
            raise ValueError(
                f"Invalid AWS region format: {v}. "
                "Expected format: us-east-1, eu-west-1, ap-southeast-3, etc."
            )
        return v

    @field_validator('max_workers')
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Concurrency must stay bounded."""
        if not 1 <= v <= 64:
            raise ValueError(f"Invalid max_workers: {v}. Expected a value between 1 and 64")
        return v

    @field_validator('timeout_seconds')
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError(f"Invalid timeout_seconds: {v}. Expected a positive number")
        return v


class ConfigManager:
    """Manages the local configuration file for AWS Cost Optimizer."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Optional custom configuration directory path.
                       Defaults to ~/.aws-cost-optimizer/
        """
        if config_dir is None:
            config_dir = Path.home() / ".aws-cost-optimizer"

        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"

        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> Optional[Config]:
        """Load configuration from file.

        Returns:
            Config object if file exists and is valid, None otherwise.

        Raises:
            ValueError: If configuration file is corrupted or invalid.
        """
        if not self.config_file.exists():
            return None

        try:
            with open(self.config_file, 'r') as f:
                config_data = json.load(f)

            if isinstance(config_data.get('created_at'), str):
                # Stored as UTC with a trailing Z; Config keeps naive datetimes
                dt_str = config_data['created_at'].replace('Z', '+00:00')
                config_data['created_at'] = datetime.fromisoformat(dt_str).replace(tzinfo=None)

            return Config(**config_data)

        except (json.JSONDecodeError, ValueError) as e:
            raise ValueError(f"Invalid configuration file: {e}")
        except Exception as e:
            raise ValueError(f"Failed to load configuration: {e}")

    def load_or_default(self) -> Config:
        """Load configuration, falling back to defaults when no file exists."""
        return self.load_config() or Config()

    def save_config(self, config: Config) -> None:
        """Save configuration to file.

        Args:
            config: Configuration object to save.

        Raises:
            OSError: If unable to write configuration file.
        """
        temp_file = self.config_file.with_suffix('.tmp')
        try:
            config_dict = config.model_dump()
            config_dict['created_at'] = config.created_at.isoformat() + 'Z'

            with open(temp_file, 'w') as f:
                json.dump(config_dict, f, indent=2)

            temp_file.replace(self.config_file)

        except Exception as e:
            if temp_file.exists():
                temp_file.unlink()
            raise OSError(f"Failed to save configuration: {e}")

    def config_exists(self) -> bool:
        """Check if configuration file exists."""
        return self.config_file.exists()

    def get_config_path(self) -> Path:
        """Get the configuration file path."""
        return self.config_file

    def delete_config(self) -> None:
        """Delete the configuration file.

        Raises:
            OSError: If unable to delete configuration file.
        """
        if self.config_file.exists():
            try:
                self.config_file.unlink()
            except Exception as e:
                raise OSError(f"Failed to delete configuration: {e}")
