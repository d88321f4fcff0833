"""
AWS Cost Optimizer - Waste and rightsizing recommendations for AWS accounts.

Analyzes an inventory of compute, storage, network, database and cache
resources against their utilization history and a static price catalog,
and reports explainable recommendations with estimated savings.
"""

__version__ = "1.0.0"

from aws_cost_optimizer.core.exceptions import CostOptimizerError

__all__ = ["CostOptimizerError"]
