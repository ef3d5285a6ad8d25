from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone


class Order(models.Model):
    class Network(models.TextChoices):
        MTN = 'MTN', 'MTN'
        TELECEL = 'TELECEL', 'Telecel'
        ISHARE = 'ISHARE', 'AirtelTigo iShare'
        BIGTIME = 'BIGTIME', 'AirtelTigo BigTime'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROCESSING = 'processing', 'Processing'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'

    class DispatchStatus(models.TextChoices):
        NOT_DISPATCHED = 'not_dispatched', 'Not dispatched'
        SUCCESS = 'success', 'Accepted by provider'
        FAILED = 'failed', 'Failed'
        DISABLED = 'disabled', 'Disabled'

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status', 'dispatch_status'], name='orders_status_dispatch_idx'),
        ]

    user_id = models.CharField(max_length=64, db_index=True)
    customer_name = models.CharField(max_length=255, blank=True, default='')
    customer_phone = models.CharField(max_length=32, blank=True, default='')
    network = models.CharField(max_length=16, choices=Network.choices, db_index=True)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    currency = models.CharField(max_length=8, default='GHS')

    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PROCESSING, db_index=True)
    dispatch_status = models.CharField(
        max_length=16, choices=DispatchStatus.choices, default=DispatchStatus.NOT_DISPATCHED, db_index=True,
    )
    provider = models.CharField(max_length=32, null=True, blank=True)
    provider_reference = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    dispatch_note = models.TextField(null=True, blank=True)

    # diagnostics from polling, never a state change by themselves
    last_external_status = models.CharField(max_length=120, null=True, blank=True)
    last_synced_at = models.DateTimeField(null=True, blank=True)
    # set on every poll attempt, including unanswered ones
    last_polled_at = models.DateTimeField(null=True, blank=True, db_index=True)

    dispatched_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f'#{self.id} {self.network} {self.status}'

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.COMPLETED, self.Status.CANCELLED)

    @property
    def beneficiary_numbers(self) -> str:
        seen = []
        for item in self.items.all():
            number = (item.beneficiary_number or '').strip()
            if number and number not in seen:
                seen.append(number)
        return ', '.join(seen)


class OrderItem(models.Model):
    class Meta:
        db_table = 'order_items'
        ordering = ['id']

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product_name = models.CharField(max_length=255)
    variant_id = models.CharField(max_length=64, null=True, blank=True)
    variant_size = models.CharField(max_length=32, blank=True, default='')
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    beneficiary_number = models.CharField(max_length=32, blank=True, default='')

    def __str__(self) -> str:
        return f'{self.variant_size} {self.product_name} -> {self.beneficiary_number}'
