"""
Finance Admin
"""
from django.contrib import admin
from .models import BankAccount, Invoice


@admin.register(BankAccount)
class BankAccountAdmin(admin.ModelAdmin):
    list_display = ['name', 'bank_name', 'account_number', 'currency', 'status', 'is_active']
    list_filter = ['status', 'bank_name', 'is_active']
    search_fields = ['name', 'bank_name', 'account_number', 'iban']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'tenant', 'invoice_date', 'due_date', 'total_amount', 'paid_amount', 'status']
    list_filter = ['status']
    search_fields = ['invoice_number', 'tenant__name']
    readonly_fields = ['invoice_number', 'created_at', 'updated_at']
