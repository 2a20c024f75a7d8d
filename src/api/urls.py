"""Main API URL router for /api/v1/."""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from api.v1 import views as v1_views

router = DefaultRouter()
router.register(r'contracts', v1_views.ContractViewSet, basename='contract')
router.register(r'invoices', v1_views.InvoiceViewSet, basename='invoice')
router.register(r'commissions', v1_views.CommissionViewSet, basename='commission')
router.register(r'commission-configs', v1_views.CommissionConfigViewSet, basename='commission-config')
router.register(
    r'commission-assignments',
    v1_views.AECommissionAssignmentViewSet,
    basename='commission-assignment',
)

app_name = 'api'
urlpatterns = [
    path('', include(router.urls)),
]
