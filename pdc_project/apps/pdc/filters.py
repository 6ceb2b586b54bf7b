"""
PDC list filtering.

Query parameters:
    tenant, lease, invoice   - ids
    status                   - single value or comma separated list
    bank_name                - exact, case-insensitive
    date_from, date_to       - inclusive cheque date range
    min_amount, max_amount
    search                   - cheque number, PDC number, tenant or bank
"""
import django_filters
from django.core.exceptions import ValidationError
from django.db.models import Q

from .models import PDC
from .states import PDCStatus


class PDCFilter(django_filters.FilterSet):
    tenant = django_filters.NumberFilter(field_name='tenant_id')
    lease = django_filters.NumberFilter(field_name='lease_id')
    invoice = django_filters.NumberFilter(field_name='invoice_id')
    status = django_filters.CharFilter(method='filter_status')
    bank_name = django_filters.CharFilter(field_name='bank_name', lookup_expr='iexact')
    date_from = django_filters.DateFilter(field_name='cheque_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='cheque_date', lookup_expr='lte')
    min_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='gte')
    max_amount = django_filters.NumberFilter(field_name='amount', lookup_expr='lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = PDC
        fields = []

    def filter_status(self, queryset, name, value):
        statuses = [s.strip().upper() for s in value.split(',') if s.strip()]
        unknown = [s for s in statuses if s not in PDCStatus.values]
        if unknown:
            raise ValidationError({'status': f"Unknown status: {', '.join(unknown)}."})
        return queryset.filter(status__in=statuses)

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(cheque_number__icontains=value) |
            Q(pdc_number__icontains=value) |
            Q(tenant__name__icontains=value) |
            Q(bank_name__icontains=value)
        )
