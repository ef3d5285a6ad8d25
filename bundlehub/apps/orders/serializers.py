from __future__ import annotations

from rest_framework import serializers

from .models import Order, OrderItem


class OrderItemInputSerializer(serializers.Serializer):
    productName = serializers.CharField(max_length=255)
    variantId = serializers.CharField(max_length=64, required=False, allow_null=True, allow_blank=True)
    variantSize = serializers.CharField(max_length=32, required=False, allow_blank=True, default='')
    quantity = serializers.IntegerField(min_value=1, default=1)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    beneficiaryNumber = serializers.CharField(max_length=32, required=False, allow_blank=True, default='')
    network = serializers.ChoiceField(choices=Order.Network.choices, required=False)


class OrderCreateRequestSerializer(serializers.Serializer):
    userId = serializers.CharField(max_length=64)
    customerName = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    customerPhone = serializers.CharField(max_length=32, required=False, allow_blank=True, default='')
    network = serializers.ChoiceField(choices=Order.Network.choices, required=False)
    items = OrderItemInputSerializer(many=True)

    def validate(self, attrs):
        if not attrs.get('items'):
            raise serializers.ValidationError({'items': 'At least one item is required'})
        if not attrs.get('network'):
            missing = [i for i, item in enumerate(attrs['items']) if not item.get('network')]
            if missing:
                raise serializers.ValidationError({'items': f'network is required on items {missing} when the order has none'})
        return attrs

    def lines(self) -> list[dict]:
        out = []
        for item in self.validated_data['items']:
            out.append({
                'product_name': item['productName'],
                'variant_id': item.get('variantId') or None,
                'variant_size': item.get('variantSize') or '',
                'quantity': item.get('quantity') or 1,
                'price': item['price'],
                'beneficiary_number': item.get('beneficiaryNumber') or '',
                'network': item.get('network'),
            })
        return out


class OrderItemSerializer(serializers.ModelSerializer):
    productName = serializers.CharField(source='product_name')
    variantId = serializers.CharField(source='variant_id', allow_null=True)
    variantSize = serializers.CharField(source='variant_size')
    beneficiaryNumber = serializers.CharField(source='beneficiary_number')

    class Meta:
        model = OrderItem
        fields = ('id', 'productName', 'variantId', 'variantSize', 'quantity', 'price', 'beneficiaryNumber')


class OrderSerializer(serializers.ModelSerializer):
    userId = serializers.CharField(source='user_id')
    dispatchStatus = serializers.CharField(source='dispatch_status')
    providerReference = serializers.CharField(source='provider_reference', allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at')
    updatedAt = serializers.DateTimeField(source='updated_at')
    completedAt = serializers.DateTimeField(source='completed_at', allow_null=True)
    items = OrderItemSerializer(many=True)

    class Meta:
        model = Order
        fields = (
            'id', 'userId', 'network', 'status', 'dispatchStatus', 'provider', 'providerReference',
            'total', 'currency', 'createdAt', 'updatedAt', 'completedAt', 'items',
        )


class AdminOrderSerializer(OrderSerializer):
    customerName = serializers.CharField(source='customer_name')
    customerPhone = serializers.CharField(source='customer_phone')
    dispatchNote = serializers.CharField(source='dispatch_note', allow_null=True)
    lastExternalStatus = serializers.CharField(source='last_external_status', allow_null=True)
    lastSyncedAt = serializers.DateTimeField(source='last_synced_at', allow_null=True)
    lastPolledAt = serializers.DateTimeField(source='last_polled_at', allow_null=True)
    dispatchedAt = serializers.DateTimeField(source='dispatched_at', allow_null=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + (
            'customerName', 'customerPhone', 'dispatchNote', 'lastExternalStatus', 'lastSyncedAt', 'lastPolledAt', 'dispatchedAt',
        )


class OrdersCreateResponseSerializer(serializers.Serializer):
    items = OrderSerializer(many=True)


class AdminOrderActionResponseSerializer(serializers.Serializer):
    result = serializers.CharField()
    order = AdminOrderSerializer()
