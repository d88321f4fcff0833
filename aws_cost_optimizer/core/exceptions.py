"""
Core exception classes for AWS Cost Optimizer.
"""


class CostOptimizerError(Exception):
    """Base exception for all AWS Cost Optimizer errors."""
    
    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(CostOptimizerError):
    """Raised when configuration or reference data is invalid or missing."""
    pass


class MissingDataError(CostOptimizerError):
    """Raised when a metric series or descriptor field is absent."""
    pass


class UnknownShapeError(CostOptimizerError):
    """Raised when a resource shape has no catalog entry."""
    
    def __init__(self, shape: str, details: str = None):
        super().__init__(f"Unknown shape: {shape}", details=details)
        self.shape = shape


class CollectionError(CostOptimizerError):
    """Raised when metrics or descriptors cannot be collected for a resource."""
    
    def __init__(self, message: str, resource_id: str = None, details: str = None):
        super().__init__(message, details=details)
        self.resource_id = resource_id


class CatalogUnavailableError(CostOptimizerError):
    """Raised when an analysis run is started without a catalog."""
    
    def __init__(self, message: str = "No resource catalog supplied; cannot analyze"):
        super().__init__(message)


class AnalysisCancelled(CostOptimizerError):
    """Raised when the user cancels a run (Ctrl+C)."""

    def __init__(self, message: str = "Analysis cancelled by user"):
        super().__init__(message)
