"""ViewSets for the commission tracker API v1.

Writes go through ``contracts.services`` / ``commissions.services`` so the
API, the admin and the Celery tasks share the same rules. Domain errors are
mapped to status codes by :class:`api.v1.errors.DomainErrorMixin`.
"""
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.v1.errors import DomainErrorMixin
from api.v1.permissions import IsAdminOrReadOnly, IsAdminRole
from api.v1.serializers import (
    AECommissionAssignmentSerializer,
    CommissionConfigSerializer,
    CommissionSerializer,
    CommissionStatusSerializer,
    ConfigRevisionSerializer,
    ContractSerializer,
    ExternalInvoiceSerializer,
    InvoiceSerializer,
    InvoiceUpdateSerializer,
    OteProgressSerializer,
    RejectionSerializer,
)
from commissions import services as commission_services
from commissions.models import AECommissionAssignment, Commission, CommissionConfig
from contracts import services as contract_services
from contracts.models import Contract, Invoice
from contracts.sync import sync_external_invoice

User = get_user_model()


class AEScopedQuerysetMixin:
    """Administrators see everything; an AE only sees rows they own."""

    ae_lookup = 'ae'

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if user.is_admin:
            return qs
        return qs.filter(**{self.ae_lookup: user})


# ---------------------------------------------------------------------------
# Contracts & invoices
# ---------------------------------------------------------------------------

class ContractViewSet(DomainErrorMixin, AEScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = ContractSerializer
    queryset = Contract.objects.select_related('ae')
    permission_classes = [IsAdminOrReadOnly]
    search_fields = ['client_name']
    ordering_fields = ['client_name', 'contract_value', 'created_at']
    filterset_fields = ['ae', 'contract_type', 'payment_terms', 'is_pilot']

    def perform_create(self, serializer):
        serializer.instance = contract_services.create_contract(
            actor=self.request.user, **serializer.validated_data,
        )

    def perform_update(self, serializer):
        serializer.instance = contract_services.update_contract(
            serializer.instance, serializer.validated_data, actor=self.request.user,
        )


class InvoiceViewSet(DomainErrorMixin, AEScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = InvoiceSerializer
    queryset = Invoice.objects.select_related('contract')
    permission_classes = [IsAdminOrReadOnly]
    ae_lookup = 'contract__ae'
    search_fields = ['contract__client_name', 'external_invoice_id']
    ordering_fields = ['invoice_date', 'amount', 'created_at']
    filterset_fields = ['contract', 'revenue_type', 'contract__ae']

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        contract = data.pop('contract')
        serializer.instance = contract_services.create_invoice(
            contract, actor=self.request.user, **data,
        )

    def perform_destroy(self, instance):
        contract_services.delete_invoice(instance, actor=self.request.user)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        ser = InvoiceUpdateSerializer(self.get_object(), data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        invoice = contract_services.update_invoice(ser.instance, ser.validated_data, actor=request.user)
        return Response(InvoiceSerializer(invoice).data)

    @action(detail=False, methods=['post'], url_path='sync', permission_classes=[IsAdminRole])
    def sync(self, request):
        """Import one invoice from the external billing system."""
        ser = ExternalInvoiceSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        payload = dict(ser.validated_data)
        contract = payload.pop('contract', None)
        invoice = sync_external_invoice(payload, contract=contract, actor=request.user)
        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


# ---------------------------------------------------------------------------
# Commissions
# ---------------------------------------------------------------------------

class CommissionViewSet(
    DomainErrorMixin,
    AEScopedQuerysetMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Read commissions and drive the approval workflow.

    ``PATCH /commissions/{id}/`` with ``{"status": ..., "reason": ...}`` is the
    generic transition; ``approve``, ``reject`` and ``pay`` are shortcuts.
    """

    serializer_class = CommissionSerializer
    queryset = Commission.objects.select_related('ae', 'invoice__contract')
    permission_classes = [IsAuthenticated]
    search_fields = ['invoice__contract__client_name', 'ae__email']
    ordering_fields = ['created_at', 'total_commission', 'invoice__invoice_date']
    filterset_fields = ['status', 'ae', 'ote_applied']

    def get_permissions(self):
        if self.action in ('partial_update', 'approve', 'reject', 'pay'):
            return [IsAdminRole()]
        return super().get_permissions()

    def _respond(self, commission):
        commission = self.get_queryset().get(pk=commission.pk)
        return Response(CommissionSerializer(commission).data)

    def partial_update(self, request, pk=None):
        commission = self.get_object()
        ser = CommissionStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        commission = commission_services.transition_commission(
            commission,
            ser.validated_data['status'],
            request.user,
            reason=ser.validated_data['reason'],
        )
        return self._respond(commission)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        commission = commission_services.approve_commission(self.get_object(), request.user)
        return self._respond(commission)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        ser = RejectionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        commission = commission_services.reject_commission(
            self.get_object(), request.user, ser.validated_data['reason'],
        )
        return self._respond(commission)

    @action(detail=True, methods=['post'])
    def pay(self, request, pk=None):
        commission = commission_services.mark_commission_paid(self.get_object(), request.user)
        return self._respond(commission)

    @action(detail=False, methods=['get'], url_path='ote-progress')
    def ote_progress(self, request):
        """Year-to-date realized base commission against the OTE cap."""
        ae = request.user
        ae_id = request.query_params.get('ae')
        if ae_id and str(ae_id) != str(request.user.pk):
            if not request.user.is_admin:
                raise PermissionDenied("You can only view your own OTE progress.")
            ae = get_object_or_404(User, pk=ae_id)

        year = request.query_params.get('year')
        if year is not None:
            try:
                year = int(year)
            except ValueError:
                raise ValidationError({'year': "Must be an integer."})

        progress = commission_services.ote_progress(ae, year)
        return Response(OteProgressSerializer(progress).data)


# ---------------------------------------------------------------------------
# Configs & assignments
# ---------------------------------------------------------------------------

class CommissionConfigViewSet(
    DomainErrorMixin,
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Configs are never edited in place; ``revise`` publishes a new version."""

    serializer_class = CommissionConfigSerializer
    queryset = CommissionConfig.objects.all()
    permission_classes = [IsAdminRole]
    search_fields = ['name']
    ordering_fields = ['name', 'version', 'created_at']
    filterset_fields = ['status', 'name']

    def perform_create(self, serializer):
        serializer.instance = commission_services.create_config(
            actor=self.request.user, **serializer.validated_data,
        )

    @action(detail=True, methods=['post'])
    def revise(self, request, pk=None):
        config = self.get_object()
        ser = ConfigRevisionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        revision = commission_services.revise_config(
            config,
            ser.validated_data['changes'],
            actor=request.user,
            effective_date=ser.validated_data.get('effective_date'),
        )
        return Response(CommissionConfigSerializer(revision).data, status=status.HTTP_201_CREATED)


class AECommissionAssignmentViewSet(
    DomainErrorMixin,
    AEScopedQuerysetMixin,
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = AECommissionAssignmentSerializer
    queryset = AECommissionAssignment.objects.select_related('ae', 'config')
    permission_classes = [IsAdminOrReadOnly]
    ordering_fields = ['effective_date', 'created_at']
    filterset_fields = ['ae', 'config']

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = commission_services.assign_config(
            data['ae'], data['config'], data['effective_date'], actor=self.request.user,
        )
