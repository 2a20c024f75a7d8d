"""Serializers for the commission tracker API v1."""
from django.contrib.auth import get_user_model
from rest_framework import serializers

from commissions.models import AECommissionAssignment, Commission, CommissionConfig
from contracts.models import Contract, Invoice

User = get_user_model()


class UserSummarySerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'role']
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Contracts & invoices
# ---------------------------------------------------------------------------

class ContractSerializer(serializers.ModelSerializer):
    ae = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    ae_detail = UserSummarySerializer(source='ae', read_only=True)

    class Meta:
        model = Contract
        fields = [
            'id', 'client_name', 'ae', 'ae_detail',
            'contract_value', 'acv', 'contract_type', 'contract_length',
            'payment_terms', 'is_pilot', 'notes',
            'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        contract_value = attrs.get('contract_value', getattr(self.instance, 'contract_value', None))
        acv = attrs.get('acv', getattr(self.instance, 'acv', None))
        if contract_value is not None and acv is not None and acv > contract_value:
            raise serializers.ValidationError({'acv': "ACV cannot exceed the total contract value."})
        return attrs


class CommissionSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Commission
        fields = ['id', 'status', 'base_commission', 'total_commission', 'ote_applied']
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='contract.client_name', read_only=True)
    commission = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            'id', 'contract', 'client_name', 'amount', 'invoice_date',
            'revenue_type', 'notes', 'external_invoice_id', 'sync_details',
            'commission', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'external_invoice_id', 'sync_details',
            'created_by', 'created_at', 'updated_at',
        ]

    def get_commission(self, obj):
        commission = Commission.objects.filter(invoice=obj).first()
        if commission is None:
            return None
        return CommissionSummarySerializer(commission).data


class InvoiceUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        fields = ['amount', 'invoice_date', 'revenue_type', 'notes']


class ExternalInvoiceSerializer(serializers.Serializer):
    """Invoice payload from the external billing system."""

    id = serializers.CharField(max_length=120)
    customer_name = serializers.CharField(max_length=200)
    invoice_number = serializers.CharField(max_length=120, required=False, allow_blank=True, default='')
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    invoice_date = serializers.DateField()
    paid_date = serializers.DateField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    contract = serializers.PrimaryKeyRelatedField(
        queryset=Contract.objects.all(), required=False, allow_null=True,
    )


# ---------------------------------------------------------------------------
# Commissions
# ---------------------------------------------------------------------------

class CommissionSerializer(serializers.ModelSerializer):
    ae_detail = UserSummarySerializer(source='ae', read_only=True)
    client_name = serializers.CharField(source='invoice.contract.client_name', read_only=True)
    invoice_date = serializers.DateField(source='invoice.invoice_date', read_only=True)
    invoice_amount = serializers.DecimalField(
        source='invoice.amount', max_digits=14, decimal_places=2, read_only=True,
    )

    class Meta:
        model = Commission
        fields = [
            'id', 'invoice', 'invoice_date', 'invoice_amount', 'client_name',
            'ae', 'ae_detail', 'config', 'config_snapshot',
            'base_commission', 'pilot_bonus', 'multi_year_bonus', 'upfront_bonus',
            'total_commission', 'ote_applied', 'status',
            'approved_by', 'approved_at', 'rejection_reason', 'paid_by', 'paid_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CommissionStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Commission.Status.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class RejectionSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True)


# ---------------------------------------------------------------------------
# Configs & assignments
# ---------------------------------------------------------------------------

class CommissionConfigSerializer(serializers.ModelSerializer):
    class Meta:
        model = CommissionConfig
        fields = [
            'id', 'name', 'description', 'status',
            'base_commission_rate', 'pilot_bonus_rate',
            'multi_year_bonus_rate', 'multi_year_bonus_mode', 'multi_year_min_acv',
            'upfront_bonus_rate', 'annual_cap_amount', 'deceleration_rate',
            'high_value_threshold', 'high_value_rate',
            'version', 'previous_version', 'created_by', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'status', 'version', 'previous_version',
            'created_by', 'created_at', 'updated_at',
        ]


class ConfigRevisionSerializer(serializers.Serializer):
    effective_date = serializers.DateField(required=False)
    changes = serializers.DictField()

    def validate_changes(self, value):
        if not value:
            raise serializers.ValidationError("At least one field must change.")
        config_serializer = CommissionConfigSerializer(data=value, partial=True)
        config_serializer.is_valid(raise_exception=True)
        unknown = set(value) - set(config_serializer.validated_data)
        if unknown:
            raise serializers.ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}.")
        return dict(config_serializer.validated_data)


class AECommissionAssignmentSerializer(serializers.ModelSerializer):
    ae = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    config = serializers.PrimaryKeyRelatedField(
        queryset=CommissionConfig.objects.filter(status=CommissionConfig.Status.ACTIVE),
    )
    ae_detail = UserSummarySerializer(source='ae', read_only=True)
    config_name = serializers.StringRelatedField(source='config', read_only=True)

    class Meta:
        model = AECommissionAssignment
        fields = [
            'id', 'ae', 'ae_detail', 'config', 'config_name',
            'effective_date', 'end_date', 'created_by', 'created_at',
        ]
        read_only_fields = ['id', 'end_date', 'created_by', 'created_at']


class OteProgressSerializer(serializers.Serializer):
    ae_id = serializers.CharField()
    year = serializers.IntegerField()
    policy = serializers.CharField()
    total_base_commission = serializers.DecimalField(max_digits=14, decimal_places=2)
    annual_cap_amount = serializers.DecimalField(max_digits=14, decimal_places=2, allow_null=True)
    percentage = serializers.DecimalField(max_digits=7, decimal_places=2, allow_null=True)
    ote_reached = serializers.BooleanField()
