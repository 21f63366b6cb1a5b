import os
from unittest.mock import patch

import pytest

from experiences.adapters.heavenly_tours import HeavenlyToursAdapter
from experiences.adapters.local import LocalCatalogAdapter
from experiences.catalog import InMemoryCatalogStore
from experiences.config import AggregatorConfig, ProviderConfig
from experiences.registry import SourceRegistry, build_source_registry


def test_provider_config_defaults():
    with patch.dict(os.environ, {}, clear=True):
        config = ProviderConfig.from_env("heavenly_tours", "Heavenly Tours")

    assert config.base_url == "https://mock.turpal.com"
    assert config.api_key == ""
    assert config.timeout == 30.0
    assert config.cache_ttl == 3600
    assert config.enabled is True
    assert config.health_probe is False
    assert config.mock_fallback is True


def test_provider_config_from_env():
    env = {
        "HEAVENLY_TOURS_BASE_URL": "https://api.heavenly.test",
        "HEAVENLY_TOURS_API_KEY": "k-123",
        "HEAVENLY_TOURS_TIMEOUT": "12.5",
        "HEAVENLY_TOURS_CACHE_DURATION": "60",
        "HEAVENLY_TOURS_ENABLED": "false",
        "HEAVENLY_TOURS_HEALTH_PROBE": "yes",
        "HEAVENLY_TOURS_MOCK_FALLBACK": "0",
    }
    with patch.dict(os.environ, env, clear=True):
        config = ProviderConfig.from_env("heavenly_tours", "Heavenly Tours")

    assert config.base_url == "https://api.heavenly.test"
    assert config.api_key == "k-123"
    assert config.timeout == 12.5
    assert config.cache_ttl == 60
    assert config.enabled is False
    assert config.health_probe is True
    assert config.mock_fallback is False


def test_non_numeric_env_falls_back_to_default():
    with patch.dict(os.environ, {"HEAVENLY_TOURS_TIMEOUT": "soon"}, clear=True):
        assert ProviderConfig.from_env("heavenly_tours", "Heavenly Tours").timeout == 30.0


def test_aggregator_config_from_env():
    env = {
        "EXPERIENCES_CACHE_DURATION": "120",
        "EXPERIENCES_DEFAULT_LIMIT": "25",
        "EXPERIENCES_DEFAULT_WINDOW_DAYS": "7",
    }
    with patch.dict(os.environ, env, clear=True):
        config = AggregatorConfig.from_env()

    assert config.list_cache_ttl == 120
    assert config.default_limit == 25
    assert config.default_window_days == 7
    assert config.default_source == "local"
    assert [p.name for p in config.providers] == ["heavenly_tours"]
    assert config.provider("heavenly_tours").label == "Heavenly Tours"
    assert config.provider("missing") is None


def test_build_source_registry_puts_local_first():
    config = AggregatorConfig(providers=[ProviderConfig(name="heavenly_tours", label="Heavenly Tours")])

    registry = build_source_registry(config, InMemoryCatalogStore())

    assert registry.names() == ("local", "heavenly_tours")
    assert isinstance(registry.local, LocalCatalogAdapter)
    assert isinstance(registry.get("heavenly_tours"), HeavenlyToursAdapter)
    assert registry.get("unknown") is None
    assert len(registry) == 2


def test_build_source_registry_skips_unknown_providers():
    config = AggregatorConfig(providers=[ProviderConfig(name="nobody_tours", label="Nobody")])
    assert build_source_registry(config, InMemoryCatalogStore()).names() == ("local",)


def test_local_name_is_reserved_for_catalog():
    config = AggregatorConfig(providers=[ProviderConfig(name="local", label="Impostor")])
    with pytest.raises(ValueError):
        build_source_registry(config, InMemoryCatalogStore())


def test_registry_is_immutable():
    registry = SourceRegistry(LocalCatalogAdapter(InMemoryCatalogStore()))
    assert isinstance(registry.providers, tuple)
    with pytest.raises(AttributeError):
        registry.providers = ()
