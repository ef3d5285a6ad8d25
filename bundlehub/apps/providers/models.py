from __future__ import annotations

from django.db import models


class ProviderSetting(models.Model):
    """Admin on/off switch for one fulfillment provider.

    Providers without a row use ``settings.PROVIDER_DEFAULT_ENABLED``.
    """

    class Meta:
        db_table = 'provider_settings'
        ordering = ['provider']

    provider = models.CharField(max_length=32, unique=True)
    enabled = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.provider} ({'on' if self.enabled else 'off'})"
