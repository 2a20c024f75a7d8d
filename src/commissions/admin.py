"""Django admin for the commissions module."""
from django.contrib import admin, messages

from commissions.exceptions import InvalidTransitionError
from commissions.models import AECommissionAssignment, Commission, CommissionConfig
from commissions.services import approve_commission, mark_commission_paid


class AECommissionAssignmentInline(admin.TabularInline):
    model = AECommissionAssignment
    fk_name = "config"
    extra = 0
    fields = ("ae", "effective_date", "end_date")
    readonly_fields = ("ae", "effective_date", "end_date")
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(CommissionConfig)
class CommissionConfigAdmin(admin.ModelAdmin):
    list_display = (
        "name", "version", "status",
        "base_commission_rate", "annual_cap_amount", "deceleration_rate",
    )
    list_filter = ("status", "multi_year_bonus_mode")
    search_fields = ("name",)
    readonly_fields = ("version", "previous_version", "created_by", "created_at", "updated_at")
    inlines = [AECommissionAssignmentInline]


@admin.register(AECommissionAssignment)
class AECommissionAssignmentAdmin(admin.ModelAdmin):
    list_display = ("ae", "config", "effective_date", "end_date")
    list_filter = ("config",)
    search_fields = ("ae__email", "ae__first_name", "ae__last_name")
    date_hierarchy = "effective_date"
    autocomplete_fields = ("ae",)


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = (
        "invoice", "ae", "status",
        "base_commission", "total_commission", "ote_applied", "created_at",
    )
    list_filter = ("status", "ote_applied")
    search_fields = ("ae__email", "invoice__contract__client_name")
    readonly_fields = (
        "invoice", "ae", "config", "config_snapshot",
        "base_commission", "pilot_bonus", "multi_year_bonus", "upfront_bonus",
        "total_commission", "ote_applied", "status",
        "approved_by", "approved_at", "rejection_reason", "paid_by", "paid_at",
        "created_at", "updated_at",
    )
    actions = ["approve_selected", "mark_selected_paid"]

    def has_add_permission(self, request):
        return False

    def _bulk_transition(self, request, queryset, transition, label):
        done = 0
        for commission in queryset:
            try:
                transition(commission, request.user)
                done += 1
            except InvalidTransitionError as exc:
                self.message_user(request, f"{commission.pk}: {exc}", level=messages.WARNING)
        if done:
            self.message_user(request, f"{done} commission(s) {label}.", level=messages.SUCCESS)

    @admin.action(description="Approve selected commissions")
    def approve_selected(self, request, queryset):
        self._bulk_transition(request, queryset, approve_commission, "approved")

    @admin.action(description="Mark selected commissions as paid")
    def mark_selected_paid(self, request, queryset):
        self._bulk_transition(request, queryset, mark_commission_paid, "marked as paid")
