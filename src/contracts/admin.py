from django.contrib import admin

from contracts.models import Contract, Invoice


class InvoiceInline(admin.TabularInline):
    model = Invoice
    extra = 0
    fields = ("invoice_date", "amount", "revenue_type", "external_invoice_id")
    readonly_fields = ("external_invoice_id",)
    show_change_link = True


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = (
        "client_name", "ae", "contract_type", "contract_value", "acv",
        "contract_length", "payment_terms", "is_pilot",
    )
    list_filter = ("contract_type", "payment_terms", "is_pilot")
    search_fields = ("client_name", "ae__email")
    autocomplete_fields = ("ae",)
    readonly_fields = ("created_by", "created_at", "updated_at")
    inlines = [InvoiceInline]


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("contract", "invoice_date", "amount", "revenue_type", "external_invoice_id")
    list_filter = ("revenue_type",)
    search_fields = ("contract__client_name", "external_invoice_id")
    date_hierarchy = "invoice_date"
    readonly_fields = ("external_invoice_id", "sync_details", "created_by", "created_at", "updated_at")
