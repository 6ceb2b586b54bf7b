"""
PDC Admin
Status and history are read-only here; lifecycle changes go through the engine.
"""
from django.contrib import admin
from .models import PDC, PDCStatusTransition, WithdrawalSettlement


class PDCStatusTransitionInline(admin.TabularInline):
    model = PDCStatusTransition
    extra = 0
    can_delete = False
    fields = ['sequence', 'from_status', 'to_status', 'transitioned_at', 'performed_by', 'notes']
    readonly_fields = fields
    ordering = ['sequence']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(PDC)
class PDCAdmin(admin.ModelAdmin):
    list_display = ['pdc_number', 'tenant', 'cheque_number', 'bank_name', 'amount', 'cheque_date', 'status']
    list_filter = ['status', 'bank_name']
    search_fields = ['pdc_number', 'cheque_number', 'tenant__name', 'bank_name']
    date_hierarchy = 'cheque_date'
    inlines = [PDCStatusTransitionInline]
    readonly_fields = [
        'pdc_number', 'status', 'version', 'deposit_date', 'cleared_date', 'bounced_date',
        'bounce_reason', 'withdrawal_date', 'withdrawal_reason', 'new_payment_method',
        'transaction_id', 'replacement_cheque', 'original_cheque', 'bank_account',
        'created_at', 'updated_at', 'created_by', 'updated_by',
    ]

    def has_delete_permission(self, request, obj=None):
        return False

    def get_readonly_fields(self, request, obj=None):
        # Cheque details are fixed once registered
        if obj is not None:
            return self.readonly_fields + ['tenant', 'cheque_number', 'bank_name', 'amount', 'cheque_date']
        return self.readonly_fields


@admin.register(WithdrawalSettlement)
class WithdrawalSettlementAdmin(admin.ModelAdmin):
    list_display = ['pdc', 'tenant', 'method', 'amount', 'link_status', 'linked_at']
    list_filter = ['method', 'link_status']
    search_fields = ['pdc__pdc_number', 'tenant__name', 'transaction_id']
    readonly_fields = ['pdc', 'tenant', 'new_pdc', 'link_status', 'linked_at', 'created_at', 'updated_at']

    def has_delete_permission(self, request, obj=None):
        return False
