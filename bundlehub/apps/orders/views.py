from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status as http_status
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Order
from .serializers import (
    AdminOrderActionResponseSerializer,
    AdminOrderSerializer,
    OrderCreateRequestSerializer,
    OrderSerializer,
    OrdersCreateResponseSerializer,
)
from .services import (
    DispatchDisabled,
    OrderServiceError,
    OrderStatusError,
    create_and_dispatch,
    redispatch_order,
    refresh_order_status,
)

logger = logging.getLogger(__name__)


def _get_order(id: int) -> Order:
    try:
        return Order.objects.prefetch_related('items').get(id=id)
    except Order.DoesNotExist:
        raise NotFound('Order not found')


class OrdersCreateView(APIView):
    """Checkout hand-off: one order per network, each dispatched right away."""

    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Orders"], request=OrderCreateRequestSerializer, responses={201: OrdersCreateResponseSerializer})
    def post(self, request):
        body = OrderCreateRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data
        try:
            orders = create_and_dispatch(
                user_id=data['userId'],
                items=body.lines(),
                customer_name=data.get('customerName') or '',
                customer_phone=data.get('customerPhone') or '',
                network=data.get('network'),
            )
        except OrderServiceError as exc:
            raise ValidationError(str(exc))
        return Response({'items': OrderSerializer(orders, many=True).data}, status=http_status.HTTP_201_CREATED)


class OrderDetailsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Orders"], responses={200: OrderSerializer})
    def get(self, request, id: int):
        o = _get_order(id)
        if not request.user.is_staff and str(o.user_id) != str(request.user.pk):
            raise PermissionDenied('You do not have access to this order')
        return Response(OrderSerializer(o).data)


class AdminOrdersListView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(
        tags=["Admin Orders"],
        parameters=[
            OpenApiParameter(name='status', required=False, type=str),
            OpenApiParameter(name='dispatchStatus', required=False, type=str),
            OpenApiParameter(name='network', required=False, type=str),
            OpenApiParameter(name='provider', required=False, type=str),
            OpenApiParameter(name='limit', required=False, type=int),
        ],
        responses={200: AdminOrderSerializer(many=True)},
    )
    def get(self, request):
        qs = Order.objects.prefetch_related('items').order_by('-created_at', '-id')
        params = request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'])
        if params.get('dispatchStatus'):
            qs = qs.filter(dispatch_status=params['dispatchStatus'])
        if params.get('network'):
            qs = qs.filter(network=params['network'].upper())
        if params.get('provider'):
            qs = qs.filter(provider=params['provider'].lower())
        try:
            limit = max(1, min(int(params.get('limit') or 50), 200))
        except ValueError:
            raise ValidationError('limit must be an integer')
        return Response({'items': AdminOrderSerializer(qs[:limit], many=True).data})


class AdminOrderDetailsView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(tags=["Admin Orders"], responses={200: AdminOrderSerializer})
    def get(self, request, id: int):
        return Response(AdminOrderSerializer(_get_order(id)).data)


class AdminOrderDispatchView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(tags=["Admin Orders"], request=None, responses={200: AdminOrderActionResponseSerializer})
    def post(self, request, id: int):
        _get_order(id)
        try:
            result = redispatch_order(id)
        except DispatchDisabled as exc:
            return Response({'message': str(exc), 'order': AdminOrderSerializer(_get_order(id)).data},
                            status=http_status.HTTP_409_CONFLICT)
        except OrderServiceError as exc:
            raise ValidationError(str(exc))
        logger.info('Manual dispatch', extra={'order_id': id, 'result': result.result, 'user_id': request.user.pk})
        return Response({'result': result.result, 'order': AdminOrderSerializer(_get_order(id)).data})


class AdminOrderRefreshStatusView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(tags=["Admin Orders"], request=None, responses={200: AdminOrderActionResponseSerializer})
    def post(self, request, id: int):
        _get_order(id)
        try:
            result = refresh_order_status(id)
        except (OrderStatusError, OrderServiceError) as exc:
            raise ValidationError(str(exc))
        return Response({'result': result, 'order': AdminOrderSerializer(_get_order(id)).data})
