"""Collection adapters that turn AWS APIs into inventories and metric series."""

from .inventory import InventoryCollector
from .cloudwatch import CloudWatchMetricProvider

__all__ = [
    'InventoryCollector',
    'CloudWatchMetricProvider',
]
