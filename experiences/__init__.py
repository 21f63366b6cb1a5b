"""Experience aggregation: canonical models, source adapters and the aggregator."""

from experiences.aggregator import ExperienceAggregator, create_aggregator
from experiences.catalog import (
    CatalogExperience,
    CatalogSlot,
    CatalogStore,
    InMemoryCatalogStore,
    SqlCatalogStore,
)
from experiences.config import AggregatorConfig, ProviderConfig
from experiences.models import (
    AggregatedListing,
    Availability,
    Experience,
    ExperienceDetails,
    Money,
    PriceSlot,
    SourceStatusSnapshot,
)
from experiences.registry import SourceRegistry, build_source_registry

__all__ = [
    "AggregatedListing",
    "AggregatorConfig",
    "Availability",
    "CatalogExperience",
    "CatalogSlot",
    "CatalogStore",
    "Experience",
    "ExperienceAggregator",
    "ExperienceDetails",
    "InMemoryCatalogStore",
    "Money",
    "PriceSlot",
    "ProviderConfig",
    "SourceRegistry",
    "SourceStatusSnapshot",
    "SqlCatalogStore",
    "build_source_registry",
    "create_aggregator",
]
