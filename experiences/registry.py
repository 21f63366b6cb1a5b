"""Source registry construction."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple

from experiences.adapters.base import SourceAdapter
from experiences.adapters.heavenly_tours import HeavenlyToursAdapter
from experiences.adapters.local import LocalCatalogAdapter
from experiences.catalog import CatalogStore
from experiences.config import AggregatorConfig, ProviderConfig
from experiences.models import LOCAL_SOURCE

logger = logging.getLogger(__name__)

# Provider name -> adapter class; a new provider registers here
PROVIDER_ADAPTERS: Dict[str, Callable[[ProviderConfig], SourceAdapter]] = {
    "heavenly_tours": HeavenlyToursAdapter,
}


class SourceRegistry:
    """Immutable, ordered set of sources: the local catalog, then providers."""

    def __init__(self, local: LocalCatalogAdapter, providers: Iterable[SourceAdapter] = ()):
        providers = tuple(providers)
        names = [local.name] + [provider.name for provider in providers]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"duplicate source names: {sorted(duplicates)}")
        self._local = local
        self._providers: Tuple[SourceAdapter, ...] = providers

    @property
    def local(self) -> LocalCatalogAdapter:
        return self._local

    @property
    def providers(self) -> Tuple[SourceAdapter, ...]:
        return self._providers

    def get(self, name: str) -> Optional[SourceAdapter]:
        for source in self:
            if source.name == name:
                return source
        return None

    def names(self) -> Tuple[str, ...]:
        return tuple(source.name for source in self)

    def __iter__(self) -> Iterator[SourceAdapter]:
        yield self._local
        yield from self._providers

    def __len__(self) -> int:
        return 1 + len(self._providers)


def build_source_registry(config: AggregatorConfig, catalog_store: CatalogStore) -> SourceRegistry:
    providers = []
    for provider_config in config.providers:
        if provider_config.name == LOCAL_SOURCE:
            raise ValueError(f"'{LOCAL_SOURCE}' is reserved for the local catalog")
        adapter_cls = PROVIDER_ADAPTERS.get(provider_config.name)
        if adapter_cls is None:
            logger.warning(f"No adapter for configured provider '{provider_config.name}', skipping")
            continue
        providers.append(adapter_cls(provider_config))
        logger.info(
            f"Registered provider {provider_config.name} "
            f"(enabled={provider_config.enabled}, base_url={provider_config.base_url})"
        )
    return SourceRegistry(LocalCatalogAdapter(catalog_store), providers)
