from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver

from .base import ProviderAdapter
from .codecraft import CodeCraftAdapter, CodeCraftConfig
from .easydata import EasyDataAdapter, EasyDataConfig
from .jaybart import JaybartAdapter, JaybartConfig
from .jesco import JescoAdapter, JescoConfig


@dataclass(frozen=True)
class AdapterBinding:
    provider: str
    adapter: ProviderAdapter
    enabled: bool = True


def _pick(values: Mapping[str, Any], *keys: str) -> Dict[str, Any]:
    # only forward keys that are set so the config dataclass defaults apply
    return {k: values[k] for k in keys if values.get(k) not in (None, '')}


def _jaybart_builder(values: Mapping[str, Any]) -> JaybartAdapter:
    return JaybartAdapter(JaybartConfig(**_pick(values, 'base_url', 'api_key', 'network_ids', 'completes_on_push')))


def _codecraft_builder(values: Mapping[str, Any]) -> CodeCraftAdapter:
    return CodeCraftAdapter(CodeCraftConfig(**_pick(
        values, 'base_url', 'api_key', 'client_email', 'network_codes', 'special_networks', 'completes_on_push',
    )))


def _jesco_builder(values: Mapping[str, Any]) -> JescoAdapter:
    return JescoAdapter(JescoConfig(**_pick(values, 'base_url', 'api_key', 'skus', 'completes_on_push')))


def _easydata_builder(values: Mapping[str, Any]) -> EasyDataAdapter:
    return EasyDataAdapter(EasyDataConfig(**_pick(
        values, 'base_url', 'username', 'password', 'network_code', 'completes_on_push',
    )))


BUILDERS: Dict[str, Callable[[Mapping[str, Any]], ProviderAdapter]] = {
    'jaybart': _jaybart_builder,
    'codecraft': _codecraft_builder,
    'jesco': _jesco_builder,
    'easydata': _easydata_builder,
}


def normalize_provider(provider: Any) -> str:
    return str(provider or '').strip().lower()


def build_adapter(provider: str, values: Optional[Mapping[str, Any]] = None) -> Optional[ProviderAdapter]:
    builder = BUILDERS.get(normalize_provider(provider))
    if builder is None:
        return None
    return builder(values or {})


class ProviderRegistry:
    """Network -> ordered provider keys, provider key -> adapter instance.

    The mapping is static for the life of the process; enable/disable
    toggles are passed in by the caller on every lookup.
    """

    def __init__(self, adapters: Dict[str, ProviderAdapter], routes: Mapping[str, Iterable[str]]):
        self._adapters = dict(adapters)
        self._routes = {
            str(network).upper(): [normalize_provider(p) for p in providers if normalize_provider(p) in self._adapters]
            for network, providers in routes.items()
        }

    @classmethod
    def from_settings(cls) -> 'ProviderRegistry':
        configs = getattr(settings, 'PROVIDERS', {}) or {}
        adapters = {}
        for key in BUILDERS:
            adapters[key] = build_adapter(key, configs.get(key))
        return cls(adapters, getattr(settings, 'NETWORK_PROVIDERS', {}) or {})

    @property
    def providers(self) -> List[str]:
        return list(self._adapters)

    def get(self, provider: Any) -> Optional[ProviderAdapter]:
        return self._adapters.get(normalize_provider(provider))

    def providers_for_network(self, network: Any) -> List[str]:
        return list(self._routes.get(str(network or '').upper(), []))

    def networks_for(self, provider: Any) -> List[str]:
        key = normalize_provider(provider)
        return [network for network, providers in self._routes.items() if key in providers]

    def resolve(self, network: Any, toggles: Mapping[str, bool]) -> Optional[AdapterBinding]:
        for provider in self.providers_for_network(network):
            if toggles.get(provider):
                return AdapterBinding(provider=provider, adapter=self._adapters[provider], enabled=True)
        return None

    def polling_providers(self) -> List[str]:
        return [key for key, adapter in self._adapters.items() if adapter.supports_status_polling]


_registry: Optional[ProviderRegistry] = None


def get_registry() -> ProviderRegistry:
    global _registry
    if _registry is None:
        _registry = ProviderRegistry.from_settings()
    return _registry


def reset_registry() -> None:
    global _registry
    _registry = None


@receiver(setting_changed)
def _reset_on_settings_change(sender, setting, **kwargs):
    if setting in ('PROVIDERS', 'NETWORK_PROVIDERS'):
        reset_registry()
