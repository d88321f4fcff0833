"""
Resource catalog: static reference data mapping a resource shape to its
capacity and unit price, plus flat unit prices for kinds that have no shape.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError, UnknownShapeError


logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "catalog.json"


class Capacity(BaseModel):
    vcpu: float = Field(..., description="Virtual CPUs")
    memory_gib: float = Field(..., description="Memory in GiB")
    architecture: str = Field(default="x86_64", description="CPU architecture, e.g. x86_64 or arm64")


class CatalogEntry(BaseModel):
    """Capacity and on-demand price of one shape."""

    shape_key: str
    kind: str = Field(default="compute", description="Resource kind the shape belongs to")
    family: Optional[str] = None
    capacity: Capacity
    hourly_price: float = Field(..., description="On-demand USD per hour")

    @field_validator('hourly_price')
    @classmethod
    def validate_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Invalid hourly price: {v}. Prices cannot be negative")
        return v

    @property
    def vcpu(self) -> float:
        return self.capacity.vcpu

    @property
    def memory_gib(self) -> float:
        return self.capacity.memory_gib

    @property
    def architecture(self) -> str:
        return self.capacity.architecture


class Catalog(BaseModel):
    """Key to entry lookup over shapes and unit prices.

    Loaded once per analysis run and only read afterwards.
    """

    version: str = "unversioned"
    currency: str = "USD"
    entries: Dict[str, CatalogEntry] = Field(default_factory=dict)
    unit_prices: Dict[str, float] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Catalog':
        """Build a catalog from the JSON document layout.

        Raises:
            ConfigurationError: If the document is not a valid catalog
        """
        try:
            shapes = data.get('shapes', {})
            entries = {
                shape: CatalogEntry(shape_key=shape, **spec)
                for shape, spec in shapes.items()
            }
            return cls(
                version=str(data.get('version', 'unversioned')),
                currency=data.get('currency', 'USD'),
                entries=entries,
                unit_prices=data.get('unit_prices', {}),
            )
        except (ValidationError, TypeError, AttributeError) as e:
            raise ConfigurationError("Invalid catalog document", details=str(e))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'Catalog':
        """Load a catalog JSON file.

        Raises:
            ConfigurationError: If the file is missing or invalid
        """
        path = Path(path)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Catalog file not found: {path}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid catalog file {path}", details=str(e))

        catalog = cls.from_dict(data)
        logger.info(f"Loaded catalog {catalog.version} with {len(catalog.entries)} shapes from {path}")
        return catalog

    @classmethod
    def default(cls) -> 'Catalog':
        """Load the catalog bundled with the package."""
        return cls.from_file(DEFAULT_CATALOG_PATH)

    def get(self, shape: Optional[str]) -> Optional[CatalogEntry]:
        if not shape:
            return None
        return self.entries.get(shape)

    def lookup(self, shape: Optional[str]) -> CatalogEntry:
        """Return the entry for ``shape``.

        Raises:
            UnknownShapeError: If the shape is not in the catalog
        """
        entry = self.get(shape)
        if entry is None:
            raise UnknownShapeError(str(shape))
        return entry

    def entries_of_kind(self, kind: str) -> List[CatalogEntry]:
        """All entries of one resource kind, ordered by shape key."""
        return sorted(
            (entry for entry in self.entries.values() if entry.kind == kind),
            key=lambda entry: entry.shape_key
        )

    def unit_price(self, name: str, default: Optional[float] = None) -> float:
        """Return a flat unit price such as ``elastic_ip_monthly``.

        Raises:
            ConfigurationError: If the price is missing and no default is given
        """
        if name in self.unit_prices:
            return self.unit_prices[name]
        if default is not None:
            return default
        raise ConfigurationError(f"Catalog has no unit price '{name}'")
