from django.urls import path

from .views import AdminProvidersListView, AdminProviderToggleView

admin_urlpatterns = [
    path('providers', AdminProvidersListView.as_view(), name='admin-providers-list'),
    path('providers/<str:provider>/toggle', AdminProviderToggleView.as_view(), name='admin-providers-toggle'),
]
