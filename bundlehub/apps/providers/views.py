from __future__ import annotations

import logging

from drf_spectacular.utils import extend_schema
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    ProviderToggleRequestSerializer,
    ProviderToggleResponseSerializer,
    ProvidersListResponseSerializer,
)
from .services import UnknownProviderError, provider_overview, set_provider_enabled

logger = logging.getLogger(__name__)


class AdminProvidersListView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(tags=["Admin Providers"], responses={200: ProvidersListResponseSerializer})
    def get(self, request):
        return Response({'items': provider_overview()})


class AdminProviderToggleView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(
        tags=["Admin Providers"],
        request=ProviderToggleRequestSerializer,
        responses={200: ProviderToggleResponseSerializer},
    )
    def post(self, request, provider: str):
        body = ProviderToggleRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        try:
            setting = set_provider_enabled(provider, body.validated_data['enabled'])
        except UnknownProviderError:
            raise NotFound('Provider not found')
        logger.info(
            'Provider toggled by admin',
            extra={'provider': setting.provider, 'enabled': setting.enabled, 'user_id': getattr(request.user, 'id', None)},
        )
        return Response({
            'provider': setting.provider,
            'enabled': setting.enabled,
            'updatedAt': setting.updated_at,
        })
