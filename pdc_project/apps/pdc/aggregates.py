"""
Aging & dashboard figures. Read-only; every function accepts `today` so
reports can be reproduced for a past date.
"""
from datetime import date, timedelta
from decimal import Decimal

from django.db.models import Count, Sum

from .conf import pdc_setting
from .exceptions import InvalidDateRange
from .models import PDC, WithdrawalSettlement
from .states import PDCStatus, OUTSTANDING_STATUSES

UPCOMING_STATUSES = (PDCStatus.RECEIVED, PDCStatus.DUE)
DASHBOARD_LIST_SIZE = 10


def _check_range(date_from, date_to):
    if date_from and date_to and date_to < date_from:
        raise InvalidDateRange(date_from, date_to)


def _totals(queryset):
    totals = queryset.aggregate(count=Count('id'), total_value=Sum('amount'))
    return {'count': totals['count'], 'total_value': totals['total_value'] or Decimal('0.00')}


def _rate(bounced, cleared):
    settled = bounced + cleared
    if not settled:
        return None
    return (Decimal(bounced) / Decimal(settled)).quantize(Decimal('0.0001'))


def days_until_due(pdc, today=None):
    """Days from today to the cheque date; negative once the date has passed."""
    today = today or date.today()
    return (pdc.cheque_date - today).days


def is_overdue_for_deposit(pdc, today=None):
    """Cheque date has passed but the cheque was never deposited."""
    today = today or date.today()
    return pdc.status in UPCOMING_STATUSES and pdc.cheque_date < today


def due_bucket(days, today=None, tenant=None):
    """Undeposited cheques dated from today up to `days` ahead (inclusive)."""
    today = today or date.today()
    cheques = PDC.objects.filter(status__in=UPCOMING_STATUSES).cheque_date_between(
        today, today + timedelta(days=days)
    )
    if tenant is not None:
        cheques = cheques.for_tenant(tenant)
    return _totals(cheques)


def due_this_week(today=None, tenant=None):
    return due_bucket(pdc_setting('WEEK_DAYS'), today=today, tenant=tenant)


def due_this_month(today=None, tenant=None):
    return due_bucket(pdc_setting('MONTH_DAYS'), today=today, tenant=tenant)


def bounce_rate(tenant=None, date_from=None, date_to=None):
    """
    bounced / (cleared + bounced) over cheques that bounced or cleared in
    the period. A bounced cheque that was later replaced still counts as a
    bounce. None when nothing cleared or bounced.
    """
    _check_range(date_from, date_to)
    bounced = PDC.objects.filter(bounced_date__isnull=False)
    cleared = PDC.objects.filter(cleared_date__isnull=False)
    if tenant is not None:
        bounced = bounced.for_tenant(tenant)
        cleared = cleared.for_tenant(tenant)
    if date_from:
        bounced = bounced.filter(bounced_date__gte=date_from)
        cleared = cleared.filter(cleared_date__gte=date_from)
    if date_to:
        bounced = bounced.filter(bounced_date__lte=date_to)
        cleared = cleared.filter(cleared_date__lte=date_to)
    return _rate(bounced.count(), cleared.count())


def outstanding_value(tenant=None):
    """Face value still in flight (RECEIVED, DUE, DEPOSITED)."""
    cheques = PDC.objects.outstanding()
    if tenant is not None:
        cheques = cheques.for_tenant(tenant)
    return cheques.total_amount()


def dashboard_summary(today=None):
    today = today or date.today()
    month_days = pdc_setting('MONTH_DAYS')
    bounce_since = today - timedelta(days=pdc_setting('RECENT_BOUNCE_DAYS'))
    deposit_since = today - timedelta(days=pdc_setting('RECENT_DEPOSIT_DAYS'))
    # Deposited totals cover cheques still awaiting the bank, deposited this month
    month_start = today.replace(day=1)

    upcoming = (
        PDC.objects.filter(status__in=UPCOMING_STATUSES)
        .cheque_date_between(today, today + timedelta(days=month_days))
        .select_related('tenant')
        .order_by('cheque_date', 'id')[:DASHBOARD_LIST_SIZE]
    )
    recently_deposited = (
        PDC.objects.filter(status=PDCStatus.DEPOSITED, deposit_date__gte=deposit_since, deposit_date__lte=today)
        .select_related('tenant', 'bank_account')
        .order_by('-deposit_date', '-id')[:DASHBOARD_LIST_SIZE]
    )

    return {
        'as_of': today,
        'due_this_week': due_this_week(today=today),
        'due_this_month': due_this_month(today=today),
        'deposited': _totals(PDC.objects.filter(
            status=PDCStatus.DEPOSITED, deposit_date__gte=month_start, deposit_date__lte=today
        )),
        'outstanding_value': outstanding_value(),
        'recent_bounces': PDC.objects.filter(bounced_date__gte=bounce_since, bounced_date__lte=today).count(),
        'overdue_for_deposit': PDC.objects.filter(status__in=UPCOMING_STATUSES, cheque_date__lt=today).count(),
        'open_settlements': WithdrawalSettlement.objects.filter(
            link_status=WithdrawalSettlement.LINK_PENDING
        ).count(),
        'bounce_rate': bounce_rate(),
        'upcoming': list(upcoming),
        'recently_deposited': list(recently_deposited),
    }


def tenant_history(tenant, date_from=None, date_to=None):
    """Cheque track record for one tenant, by cheque date."""
    _check_range(date_from, date_to)
    cheques = PDC.objects.for_tenant(tenant)
    if date_from:
        cheques = cheques.filter(cheque_date__gte=date_from)
    if date_to:
        cheques = cheques.filter(cheque_date__lte=date_to)

    counts = cheques.aggregate(total=Count('id'), total_value=Sum('amount'))
    by_status = {
        row['status']: row['n']
        for row in cheques.order_by().values('status').annotate(n=Count('id'))
    }
    cleared = by_status.get(PDCStatus.CLEARED, 0)
    bounced = cheques.filter(bounced_date__isnull=False).count()

    return {
        'tenant_id': getattr(tenant, 'pk', tenant),
        'total': counts['total'],
        'total_value': counts['total_value'] or Decimal('0.00'),
        'cleared': cleared,
        'bounced': bounced,
        'pending': sum(by_status.get(status, 0) for status in OUTSTANDING_STATUSES),
        'withdrawn': by_status.get(PDCStatus.WITHDRAWN, 0),
        'cancelled': by_status.get(PDCStatus.CANCELLED, 0),
        'bounce_rate': _rate(bounced, cleared),
    }
