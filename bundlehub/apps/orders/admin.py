from __future__ import annotations

from django.contrib import admin, messages

from .models import Order, OrderItem
from .services import DispatchDisabled, OrderServiceError, redispatch_order


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product_name', 'variant_id', 'variant_size', 'quantity', 'price', 'beneficiary_number')
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'network', 'status', 'dispatch_status', 'provider', 'provider_reference', 'total', 'created_at')
    list_filter = ('status', 'dispatch_status', 'network', 'provider')
    search_fields = ('id', 'provider_reference', 'user_id', 'customer_phone', 'items__beneficiary_number')
    date_hierarchy = 'created_at'
    readonly_fields = (
        'status', 'dispatch_status', 'provider', 'provider_reference', 'dispatch_note',
        'last_external_status', 'last_synced_at', 'last_polled_at', 'dispatched_at', 'completed_at', 'created_at', 'updated_at',
    )
    inlines = [OrderItemInline]
    actions = ['dispatch_selected']

    @admin.action(description='Dispatch selected orders again')
    def dispatch_selected(self, request, queryset):
        for order in queryset:
            try:
                result = redispatch_order(order.id)
            except (DispatchDisabled, OrderServiceError) as exc:
                self.message_user(request, f'#{order.id}: {exc}', level=messages.WARNING)
                continue
            self.message_user(request, f'#{order.id}: {result.result}')
