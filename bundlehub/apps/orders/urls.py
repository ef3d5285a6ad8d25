from django.urls import path
from .views import (
    AdminOrderDetailsView,
    AdminOrderDispatchView,
    AdminOrderRefreshStatusView,
    AdminOrdersListView,
    OrderDetailsView,
    OrdersCreateView,
)

urlpatterns = [
    path('orders', OrdersCreateView.as_view(), name='orders-create'),
    path('orders/<int:id>', OrderDetailsView.as_view(), name='orders-details'),
]

# Admin routes are included with prefix 'admin/' in config urls
admin_urlpatterns = [
    path('orders', AdminOrdersListView.as_view(), name='admin-orders-list'),
    path('orders/<int:id>', AdminOrderDetailsView.as_view(), name='admin-orders-by-id'),
    path('orders/<int:id>/dispatch', AdminOrderDispatchView.as_view(), name='admin-orders-dispatch'),
    path('orders/<int:id>/refresh-external', AdminOrderRefreshStatusView.as_view(), name='admin-orders-refresh-external'),
]
