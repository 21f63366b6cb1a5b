from experiences.adapters.base import SourceAdapter, validate_date_range
from experiences.adapters.heavenly_tours import HeavenlyToursAdapter
from experiences.adapters.local import LocalCatalogAdapter

__all__ = [
    "HeavenlyToursAdapter",
    "LocalCatalogAdapter",
    "SourceAdapter",
    "validate_date_range",
]
