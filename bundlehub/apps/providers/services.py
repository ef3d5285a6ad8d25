from __future__ import annotations

import logging
from typing import Dict, Iterable

from django.conf import settings

from .adapters import get_registry, normalize_provider
from .models import ProviderSetting

logger = logging.getLogger(__name__)


class UnknownProviderError(Exception):
    pass


def provider_toggles(providers: Iterable[str]) -> Dict[str, bool]:
    """Current enabled flag for each provider key, read from the database."""
    defaults = getattr(settings, 'PROVIDER_DEFAULT_ENABLED', {}) or {}
    toggles = {normalize_provider(p): bool(defaults.get(normalize_provider(p), True)) for p in providers}
    if not toggles:
        return toggles
    rows = ProviderSetting.objects.filter(provider__in=list(toggles)).values_list('provider', 'enabled')
    for provider, enabled in rows:
        toggles[provider] = bool(enabled)
    return toggles


def set_provider_enabled(provider: str, enabled: bool) -> ProviderSetting:
    key = normalize_provider(provider)
    if get_registry().get(key) is None:
        raise UnknownProviderError(f'Unknown provider: {provider!r}')
    setting, _ = ProviderSetting.objects.update_or_create(provider=key, defaults={'enabled': bool(enabled)})
    logger.info('Provider toggle changed', extra={'provider': key, 'enabled': setting.enabled})
    return setting


def provider_overview() -> list[dict]:
    registry = get_registry()
    toggles = provider_toggles(registry.providers)
    return [
        {
            'provider': key,
            'networks': registry.networks_for(key),
            'enabled': toggles.get(key, False),
            'supportsStatusPolling': registry.get(key).supports_status_polling,
            'completesOnPush': registry.get(key).completes_on_push,
        }
        for key in registry.providers
    ]
