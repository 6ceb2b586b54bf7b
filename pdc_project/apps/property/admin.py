"""
Property Management Admin
"""
from django.contrib import admin
from .models import Tenant, Lease


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['tenant_number', 'name', 'email', 'phone', 'status', 'is_active']
    list_filter = ['status', 'is_active']
    search_fields = ['tenant_number', 'name', 'email', 'phone']
    readonly_fields = ['tenant_number', 'created_at', 'updated_at']


@admin.register(Lease)
class LeaseAdmin(admin.ModelAdmin):
    list_display = ['lease_number', 'tenant', 'unit_reference', 'start_date', 'end_date', 'annual_rent', 'status']
    list_filter = ['status', 'payment_frequency']
    search_fields = ['lease_number', 'tenant__name', 'unit_reference']
    readonly_fields = ['lease_number', 'created_at', 'updated_at']
