"""
PDC Views - JSON API over the PDC lifecycle engine, plus the register export.
Every endpoint requires a logged-in user; engine errors are translated to
JSON responses in one place (`pdc_api`).
"""
import json
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from apps.core.audit import log_audit, get_entity_audit_history
from apps.core.utils import parse_date
from apps.finance.models import BankAccount
from apps.property.models import Tenant
from . import aggregates, chains, engine, store
from .excel_exports import export_pdc_register
from .exceptions import (
    PDCError, IllegalTransition, InvalidBankAccount, DuplicateInstrument,
    ConcurrentModification, BrokenChainReference, InvalidDateRange,
)
from .forms import (
    PDCCreateForm, PDCBulkCreateForm, PDCDepositForm, PDCClearForm, PDCBounceForm,
    PDCReplaceForm, PDCWithdrawForm, TransitionForm, SettlementLinkForm, DuplicateCheckForm,
)
from .models import PDC, WithdrawalSettlement
from .payloads import (
    pdc_payload, pdc_summary, transition_payload, settlement_payload, bank_account_payload,
    dashboard_payload, tenant_history_payload, page_payload,
)
from .states import PDCStatus

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidDateRange: 400,
    IllegalTransition: 409,
    DuplicateInstrument: 409,
    ConcurrentModification: 409,
    InvalidBankAccount: 422,
    BrokenChainReference: 500,
}


def _field_errors(error):
    if hasattr(error, 'error_dict'):
        return error.message_dict
    return {'__all__': error.messages}


def pdc_api(view_func):
    """Translate engine errors into JSON responses."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except (PDC.DoesNotExist, WithdrawalSettlement.DoesNotExist):
            return JsonResponse({'success': False, 'error': 'NotFound', 'message': 'Record not found.'}, status=404)
        except ValidationError as e:
            return JsonResponse({
                'success': False,
                'error': 'ValidationError',
                'errors': _field_errors(e),
            }, status=400)
        except PDCError as e:
            status = ERROR_STATUS.get(type(e), 400)
            if status >= 500:
                logger.error("PDC API %s failed: %s", request.path, e)
            payload = {'success': False}
            payload.update(e.as_dict())
            return JsonResponse(payload, status=status)
    return wrapper


def _request_data(request):
    """Form-encoded POST data or a JSON body."""
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except ValueError:
            raise ValidationError({'__all__': 'Malformed JSON body.'})
        if not isinstance(data, dict):
            raise ValidationError({'__all__': 'JSON body must be an object.'})
        return data
    return request.POST


def _validated(form):
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    return form.cleaned_data


def _with_request_id(request, data):
    """Accept the idempotency key from the body or an Idempotency-Key header."""
    header = request.headers.get('Idempotency-Key')
    if header and not data.get('request_id'):
        data = data.copy()
        data['request_id'] = header
    return data


def _settlement_for(pdc):
    try:
        return pdc.withdrawal_settlement
    except WithdrawalSettlement.DoesNotExist:
        return None


def _pdc_response(pdc, status=200, **extra):
    payload = {'success': True, 'pdc': pdc_payload(pdc)}
    payload.update(extra)
    return JsonResponse(payload, status=status)


# =============================================================================
# Records
# =============================================================================

@login_required
@require_GET
@pdc_api
def pdc_list(request):
    """Filtered, paginated PDC list."""
    page = store.query_pdcs(
        request.GET,
        page=request.GET.get('page', 1),
        page_size=request.GET.get('page_size', store.DEFAULT_PAGE_SIZE),
        ordering=request.GET.get('ordering', 'cheque_date'),
    )
    return JsonResponse(page_payload(page))


@login_required
@require_POST
@pdc_api
def pdc_create(request):
    cleaned = _validated(PDCCreateForm(_request_data(request)))
    pdc = store.create_pdc(
        cleaned['tenant'],
        cleaned['cheque_number'],
        cleaned['bank_name'],
        cleaned['amount'],
        cleaned['cheque_date'],
        lease=cleaned.get('lease'),
        invoice=cleaned.get('invoice'),
        notes=cleaned.get('notes', ''),
        user=request.user,
    )
    return _pdc_response(pdc, status=201)


@login_required
@require_POST
@pdc_api
def pdc_bulk_create(request):
    """Register up to MAX_BULK_CHEQUES cheques for one tenant."""
    data = _request_data(request)
    cleaned = _validated(PDCBulkCreateForm(data))
    cheques = data.get('cheques')
    if not isinstance(cheques, list) or not all(isinstance(row, dict) for row in cheques):
        raise ValidationError({'cheques': 'Provide a list of cheques.'})
    created = store.create_bulk_pdcs(
        cleaned['tenant'],
        cheques,
        lease=cleaned.get('lease'),
        invoice=cleaned.get('invoice'),
        user=request.user,
    )
    return JsonResponse({
        'success': True,
        'count': len(created),
        'pdcs': [pdc_summary(pdc) for pdc in created],
    }, status=201)


@login_required
@require_GET
@pdc_api
def pdc_detail(request, pk):
    """PDC with status history, replacement chain, settlement and audit trail."""
    pdc = store.get_pdc(pk)
    settlement = _settlement_for(pdc)
    audit = get_entity_audit_history('PDC', pdc.pk)[:50]
    return JsonResponse({
        'success': True,
        'pdc': pdc_payload(pdc),
        'history': [
            transition_payload(t) for t in pdc.transitions.select_related('performed_by').order_by('sequence')
        ],
        'replacement_chain': [pdc_summary(p) for p in chains.get_replacement_chain(pdc.pk)],
        'settlement': settlement_payload(settlement) if settlement else None,
        'audit': [{
            'action': entry.action,
            'user': entry.user.get_username() if entry.user_id else None,
            'timestamp': entry.timestamp.isoformat(),
            'changes': entry.changes,
        } for entry in audit],
    })


# =============================================================================
# Lifecycle actions
# =============================================================================

@login_required
@require_POST
@pdc_api
def pdc_deposit(request, pk):
    form = PDCDepositForm(_with_request_id(request, _request_data(request)))
    cleaned = _validated(form)
    pdc = engine.deposit(
        pk,
        cleaned.get('bank_account'),
        deposit_date=cleaned.get('deposit_date'),
        **form.engine_kwargs(request.user)
    )
    return _pdc_response(pdc)


@login_required
@require_POST
@pdc_api
def pdc_clear(request, pk):
    form = PDCClearForm(_with_request_id(request, _request_data(request)))
    cleaned = _validated(form)
    pdc = engine.clear(pk, cleaned['cleared_date'], **form.engine_kwargs(request.user))
    return _pdc_response(pdc)


@login_required
@require_POST
@pdc_api
def pdc_bounce(request, pk):
    form = PDCBounceForm(_with_request_id(request, _request_data(request)))
    cleaned = _validated(form)
    pdc = engine.bounce(
        pk,
        cleaned['bounced_date'],
        cleaned['bounce_reason'],
        **form.engine_kwargs(request.user)
    )
    return _pdc_response(pdc)


@login_required
@require_POST
@pdc_api
def pdc_replace(request, pk):
    form = PDCReplaceForm(_with_request_id(request, _request_data(request)))
    cleaned = _validated(form)
    original, replacement = engine.replace(
        pk,
        cleaned['cheque_number'],
        cleaned['bank_name'],
        cleaned['amount'],
        cleaned['cheque_date'],
        **form.engine_kwargs(request.user)
    )
    return _pdc_response(
        original,
        status=201,
        replacement=pdc_payload(replacement) if replacement else None,
    )


@login_required
@require_POST
@pdc_api
def pdc_withdraw(request, pk):
    form = PDCWithdrawForm(_with_request_id(request, _request_data(request)))
    cleaned = _validated(form)
    pdc = engine.withdraw(
        pk,
        cleaned['withdrawal_reason'],
        withdrawal_date=cleaned.get('withdrawal_date'),
        new_payment_method=cleaned.get('new_payment_method') or None,
        transaction_id=cleaned.get('transaction_id', ''),
        settlement_amount=cleaned.get('settlement_amount'),
        new_pdc_id=cleaned.get('new_pdc'),
        settlement_bank_account_id=cleaned.get('settlement_bank_account'),
        **form.engine_kwargs(request.user)
    )
    settlement = _settlement_for(pdc)
    return _pdc_response(pdc, settlement=settlement_payload(settlement) if settlement else None)


@login_required
@require_POST
@pdc_api
def pdc_cancel(request, pk):
    form = TransitionForm(_with_request_id(request, _request_data(request)))
    _validated(form)
    pdc = engine.cancel(pk, **form.engine_kwargs(request.user))
    return _pdc_response(pdc)


# =============================================================================
# Settlements
# =============================================================================

@login_required
@require_POST
@pdc_api
def settlement_link(request, pk):
    cleaned = _validated(SettlementLinkForm(_request_data(request)))
    settlement = chains.link_settlement_cheque(pk, cleaned['new_pdc'], user=request.user)
    return JsonResponse({'success': True, 'settlement': settlement_payload(settlement)})


@login_required
@require_GET
@pdc_api
def settlement_open(request):
    tenant_id = request.GET.get('tenant') or None
    if tenant_id is not None and not tenant_id.isdigit():
        raise ValidationError({'tenant': 'Enter a whole number.'})
    settlements = chains.open_settlements(tenant=tenant_id)
    return JsonResponse({'results': [settlement_payload(s) for s in settlements]})


@login_required
@require_GET
@pdc_api
def withdrawal_list(request):
    """Withdrawn cheques, most recent first."""
    pdcs = PDC.objects.filter(status=PDCStatus.WITHDRAWN).select_related(
        'tenant', 'withdrawal_settlement'
    ).order_by('-withdrawal_date', '-id')
    tenant_id = request.GET.get('tenant')
    if tenant_id:
        if not tenant_id.isdigit():
            raise ValidationError({'tenant': 'Enter a whole number.'})
        pdcs = pdcs.filter(tenant_id=tenant_id)

    results = []
    for pdc in pdcs[:100]:
        row = pdc_summary(pdc)
        settlement = _settlement_for(pdc)
        row.update({
            'withdrawal_date': pdc.withdrawal_date.isoformat() if pdc.withdrawal_date else None,
            'withdrawal_reason': pdc.withdrawal_reason,
            'new_payment_method': pdc.new_payment_method or None,
            'settlement': settlement_payload(settlement) if settlement else None,
        })
        results.append(row)
    return JsonResponse({'results': results})


# =============================================================================
# Dashboard & lookups
# =============================================================================

@login_required
@require_GET
@pdc_api
def dashboard(request):
    today = parse_date(request.GET.get('date'), 'date')
    return JsonResponse(dashboard_payload(aggregates.dashboard_summary(today=today)))


@login_required
@require_GET
@pdc_api
def tenant_history(request, pk):
    tenant = get_object_or_404(Tenant, pk=pk)
    history = aggregates.tenant_history(
        tenant,
        date_from=parse_date(request.GET.get('date_from'), 'date_from'),
        date_to=parse_date(request.GET.get('date_to'), 'date_to'),
    )
    payload = tenant_history_payload(history)
    payload['tenant_name'] = tenant.name
    return JsonResponse(payload)


@login_required
@require_GET
@pdc_api
def bank_list(request):
    """Known drawee bank names (for autocomplete) and active deposit accounts."""
    bank_names = PDC.objects.order_by('bank_name').values_list('bank_name', flat=True).distinct()
    accounts = BankAccount.objects.filter(is_active=True, status='active')
    return JsonResponse({
        'bank_names': list(bank_names),
        'bank_accounts': [bank_account_payload(account) for account in accounts],
    })


@login_required
@require_GET
@pdc_api
def check_duplicate(request):
    """Check a cheque against the tenant's live cheques before registering it."""
    cleaned = _validated(DuplicateCheckForm(request.GET))
    existing = store.find_duplicate(
        cleaned['tenant'],
        cleaned['cheque_number'],
        cleaned['bank_name'],
        exclude_pk=cleaned.get('exclude'),
    )
    if existing:
        return JsonResponse({
            'duplicate': True,
            'existing_id': existing.pk,
            'message': f'Cheque {existing.cheque_number} ({existing.bank_name}) is already registered as {existing.pdc_number}.',
        })
    return JsonResponse({'duplicate': False})


# =============================================================================
# Reports
# =============================================================================

@login_required
@require_GET
@pdc_api
def register_export(request):
    """PDC register as an Excel workbook, using the list filters."""
    pdcs = store.filter_pdcs(request.GET, ordering=request.GET.get('ordering', 'cheque_date'))
    filters = {
        key: request.GET.get(key)
        for key in ('tenant', 'status', 'bank_name', 'date_from', 'date_to')
        if request.GET.get(key)
    }
    as_of = parse_date(request.GET.get('date'), 'date')
    response = export_pdc_register(pdcs, filters=filters, as_of_date=as_of)
    log_audit(request.user, 'export', 'PDC', changes={'report': 'pdc_register', 'filters': json.dumps(filters)})
    return response
