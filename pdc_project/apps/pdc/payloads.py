"""
JSON shapes returned by the PDC API.
"""
from .aggregates import days_until_due, is_overdue_for_deposit
from .conf import pdc_setting
from .states import ALLOWED_TRANSITIONS, PDCStatus

# Status reached -> API action that reaches it. DUE is reached by the sweep only.
ACTIONS = {
    PDCStatus.DEPOSITED: 'deposit',
    PDCStatus.CLEARED: 'clear',
    PDCStatus.BOUNCED: 'bounce',
    PDCStatus.REPLACED: 'replace',
    PDCStatus.WITHDRAWN: 'withdraw',
    PDCStatus.CANCELLED: 'cancel',
}


def money(value):
    return f'{value:.2f}' if value is not None else None


def iso(value):
    return value.isoformat() if value else None


def rate(value):
    return float(value) if value is not None else None


def allowed_actions(status):
    targets = ALLOWED_TRANSITIONS.get(status, frozenset())
    return sorted(ACTIONS[target] for target in targets if target in ACTIONS)


def pdc_summary(pdc):
    """Compact row used in lists."""
    return {
        'id': pdc.pk,
        'pdc_number': pdc.pdc_number,
        'cheque_number': pdc.cheque_number,
        'bank_name': pdc.bank_name,
        'amount': money(pdc.amount),
        'cheque_date': iso(pdc.cheque_date),
        'status': pdc.status,
        'tenant_id': pdc.tenant_id,
        'tenant_name': pdc.tenant.name,
        'version': pdc.version,
    }


def pdc_payload(pdc, today=None):
    data = pdc_summary(pdc)
    data.update({
        'currency': pdc_setting('CURRENCY'),
        'status_display': pdc.get_status_display(),
        'lease_id': pdc.lease_id,
        'invoice_id': pdc.invoice_id,
        'bank_account': bank_account_payload(pdc.bank_account) if pdc.bank_account_id else None,
        'deposit_date': iso(pdc.deposit_date),
        'cleared_date': iso(pdc.cleared_date),
        'bounced_date': iso(pdc.bounced_date),
        'bounce_reason': pdc.bounce_reason,
        'withdrawal_date': iso(pdc.withdrawal_date),
        'withdrawal_reason': pdc.withdrawal_reason,
        'new_payment_method': pdc.new_payment_method or None,
        'transaction_id': pdc.transaction_id,
        'replacement_cheque_id': pdc.replacement_cheque_id,
        'original_cheque_id': pdc.original_cheque_id,
        'notes': pdc.notes,
        'days_until_due': days_until_due(pdc, today),
        'overdue_for_deposit': is_overdue_for_deposit(pdc, today),
        'allowed_actions': allowed_actions(pdc.status),
        'created_at': iso(pdc.created_at),
        'updated_at': iso(pdc.updated_at),
    })
    return data


def transition_payload(transition):
    return {
        'sequence': transition.sequence,
        'from_status': transition.from_status,
        'to_status': transition.to_status,
        'transitioned_at': iso(transition.transitioned_at),
        'performed_by': transition.performed_by.get_username() if transition.performed_by_id else None,
        'notes': transition.notes,
    }


def bank_account_payload(account):
    return {
        'id': account.pk,
        'name': account.name,
        'bank_name': account.bank_name,
        'account_number': account.masked_account_number,
        'display_name': account.display_name,
        'currency': account.currency,
    }


def settlement_payload(settlement):
    return {
        'id': settlement.pk,
        'pdc_id': settlement.pdc_id,
        'pdc_number': settlement.pdc.pdc_number,
        'tenant_id': settlement.tenant_id,
        'amount': money(settlement.amount),
        'method': settlement.method,
        'transaction_id': settlement.transaction_id,
        'bank_account_id': settlement.bank_account_id,
        'new_pdc_id': settlement.new_pdc_id,
        'link_status': settlement.link_status,
        'linked_at': iso(settlement.linked_at),
        'created_at': iso(settlement.created_at),
    }


def bucket_payload(bucket):
    return {'count': bucket['count'], 'total_value': money(bucket['total_value'])}


def dashboard_payload(summary):
    return {
        'as_of': iso(summary['as_of']),
        'currency': pdc_setting('CURRENCY'),
        'due_this_week': bucket_payload(summary['due_this_week']),
        'due_this_month': bucket_payload(summary['due_this_month']),
        'deposited': bucket_payload(summary['deposited']),
        'outstanding_value': money(summary['outstanding_value']),
        'recent_bounces': summary['recent_bounces'],
        'overdue_for_deposit': summary['overdue_for_deposit'],
        'open_settlements': summary['open_settlements'],
        'bounce_rate': rate(summary['bounce_rate']),
        'upcoming': [pdc_summary(pdc) for pdc in summary['upcoming']],
        'recently_deposited': [
            dict(pdc_summary(pdc), deposit_date=iso(pdc.deposit_date)) for pdc in summary['recently_deposited']
        ],
    }


def tenant_history_payload(history):
    data = dict(history)
    data['total_value'] = money(history['total_value'])
    data['bounce_rate'] = rate(history['bounce_rate'])
    return data


def page_payload(page):
    return {
        'results': [pdc_summary(pdc) for pdc in page.object_list],
        'page': page.number,
        'num_pages': page.paginator.num_pages,
        'count': page.paginator.count,
        'has_next': page.has_next(),
        'has_previous': page.has_previous(),
    }
