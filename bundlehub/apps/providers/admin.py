from django.contrib import admin

from .models import ProviderSetting


@admin.register(ProviderSetting)
class ProviderSettingAdmin(admin.ModelAdmin):
    list_display = ('provider', 'enabled', 'updated_at')
    list_editable = ('enabled',)
    readonly_fields = ('updated_at',)
