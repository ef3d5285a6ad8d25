from __future__ import annotations

from rest_framework import serializers


class ProviderSerializer(serializers.Serializer):
    provider = serializers.CharField()
    networks = serializers.ListField(child=serializers.CharField())
    enabled = serializers.BooleanField()
    supportsStatusPolling = serializers.BooleanField()
    completesOnPush = serializers.BooleanField()


class ProvidersListResponseSerializer(serializers.Serializer):
    items = ProviderSerializer(many=True)


class ProviderToggleRequestSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()


class ProviderToggleResponseSerializer(serializers.Serializer):
    provider = serializers.CharField()
    enabled = serializers.BooleanField()
    updatedAt = serializers.DateTimeField()
