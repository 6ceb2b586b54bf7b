"""
PDC Record Store - registration, lookup, querying and the single status
write path.

Every status change goes through `apply_transition`:
1. the target is checked against the status table
2. a conditional UPDATE on (pk, version, status) bumps `version`
3. one history row is appended in the same transaction
4. `pdc_transitioned` is sent after commit
A lost conditional update means another request got there first and is
reported as ConcurrentModification; nothing is retried here.
"""
import logging
from datetime import date
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.db import IntegrityError, transaction
from django.db.models import F, Max
from django.utils import timezone

from apps.core.middleware import get_current_user
from apps.core.utils import parse_date
from .conf import pdc_setting
from .exceptions import ConcurrentModification, DuplicateInstrument, InvalidDateRange
from .filters import PDCFilter
from .models import PDC, PDCStatusTransition, MAX_AMOUNT
from .signals import pdc_transitioned
from .states import REQUIRED_FIELDS, TRANSITION_DATE_FIELDS, check_transition, initial_status

logger = logging.getLogger(__name__)

ORDERING_FIELDS = ('cheque_date', 'amount')
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_NOTES_LENGTH = 500
NUMBER_ATTEMPTS = 3


def acting_user(user=None):
    """Explicit user, else the request user from AuditMiddleware; None for anonymous/system."""
    if user is None:
        user = get_current_user()
    if user is not None and user.is_authenticated:
        return user
    return None


def to_amount(value, field_name='amount'):
    """Coerce request input to a 2-place Decimal, raising a field ValidationError."""
    if value in (None, ''):
        raise ValidationError({field_name: 'Amount is required.'})
    try:
        amount = Decimal(str(value).replace(',', ''))
    except (InvalidOperation, ValueError):
        raise ValidationError({field_name: 'Enter a valid amount.'})
    if not amount.is_finite():
        raise ValidationError({field_name: 'Enter a valid amount.'})
    if amount <= 0:
        raise ValidationError({field_name: 'Amount must be positive.'})
    if amount > MAX_AMOUNT:
        raise ValidationError({field_name: f'Amount cannot exceed {MAX_AMOUNT:,}.'})
    return amount.quantize(Decimal('0.01'))


def find_duplicate(tenant, cheque_number, bank_name, exclude_pk=None):
    """Live cheque with the same tenant, cheque number and bank, if any."""
    existing = PDC.objects.live().filter(
        tenant=tenant,
        cheque_number=(cheque_number or '').strip(),
        bank_name=(bank_name or '').strip(),
    )
    if exclude_pk:
        existing = existing.exclude(pk=exclude_pk)
    return existing.first()


def find_replay(pdc_pk, request_id):
    """
    Return the history row already written for `request_id`, or None.
    A request id belongs to exactly one PDC.
    """
    if not request_id:
        return None
    previous = PDCStatusTransition.objects.filter(request_id=request_id).first()
    if previous is None:
        return None
    if previous.pdc_id != pdc_pk:
        raise ValidationError({'request_id': 'Request id was already used for a different PDC.'})
    return previous


def _append_history(pdc, from_status, to_status, user, notes='', request_id=None):
    last = pdc.transitions.aggregate(last=Max('sequence'))['last'] or 0
    return PDCStatusTransition.objects.create(
        pdc=pdc,
        sequence=last + 1,
        from_status=from_status,
        to_status=to_status,
        performed_by=user,
        notes=notes or '',
        request_id=request_id or None,
    )


def _notify_on_commit(pdc, from_status, to_status, user, notes):
    transaction.on_commit(lambda: pdc_transitioned.send(
        sender=PDC,
        pdc=pdc,
        from_status=from_status,
        to_status=to_status,
        user=user,
        notes=notes,
    ))


def _save_new(pdc, user):
    """
    Insert a new cheque and its first history row. A unique violation is
    either a concurrent registration of the same cheque (DuplicateInstrument)
    or a PDC number taken by a concurrent registration of another cheque,
    in which case a fresh number is drawn.
    """
    for attempt in range(1, NUMBER_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                pdc.save()
                _append_history(pdc, None, pdc.status, user, notes='Cheque registered')
            return
        except IntegrityError:
            pdc.pk = None
            pdc._state.adding = True
            existing = find_duplicate(pdc.tenant, pdc.cheque_number, pdc.bank_name)
            if existing is not None:
                raise DuplicateInstrument(pdc.cheque_number, pdc.bank_name, existing_id=existing.pk) from None
            if attempt == NUMBER_ATTEMPTS or not PDC.objects.filter(pdc_number=pdc.pdc_number).exists():
                raise
            logger.warning("PDC number %s already taken, drawing a new one", pdc.pdc_number)
            pdc.pdc_number = ''


def create_pdc(tenant, cheque_number, bank_name, amount, cheque_date, lease=None, invoice=None,
               notes='', user=None, today=None, original_cheque=None):
    """
    Register a cheque. Starts as DUE when the cheque date already falls in
    the due window, else RECEIVED. With `original_cheque` the new cheque is
    linked as the replacement of that (already REPLACED) cheque.
    """
    today = today or date.today()
    user = acting_user(user)

    pdc = PDC(
        tenant=tenant,
        cheque_number=(cheque_number or '').strip(),
        bank_name=(bank_name or '').strip(),
        amount=to_amount(amount),
        cheque_date=parse_date(cheque_date, 'cheque_date'),
        lease=lease,
        invoice=invoice,
        notes=(notes or '').strip(),
    )
    pdc.clean()
    if pdc.cheque_date < today:
        raise ValidationError({'cheque_date': 'Post-dated cheque date cannot be in the past.'})
    if len(pdc.notes) > MAX_NOTES_LENGTH:
        raise ValidationError({'notes': f'Notes cannot exceed {MAX_NOTES_LENGTH} characters.'})

    existing = find_duplicate(tenant, pdc.cheque_number, pdc.bank_name)
    if existing:
        raise DuplicateInstrument(pdc.cheque_number, pdc.bank_name, existing_id=existing.pk)

    pdc.status = initial_status(pdc.cheque_date, today, pdc_setting('DUE_WINDOW_DAYS'))
    if user:
        pdc.created_by = user

    with transaction.atomic():
        _save_new(pdc, user)

        if original_cheque is not None:
            from .chains import link_replacement
            link_replacement(original_cheque, pdc)

        _notify_on_commit(pdc, None, pdc.status, user, 'Cheque registered')

    logger.info(
        "PDC %s registered for tenant %s: cheque %s, %s %s, dated %s, status %s",
        pdc.pdc_number, pdc.tenant_id, pdc.cheque_number, pdc_setting('CURRENCY'),
        pdc.amount, pdc.cheque_date, pdc.status,
    )
    return pdc


def create_bulk_pdcs(tenant, cheques, lease=None, invoice=None, user=None, today=None):
    """
    Register a lease's cheques in one go. All or nothing.

    `cheques` is a list of dicts with cheque_number, bank_name, amount,
    cheque_date and optional notes.
    """
    max_cheques = pdc_setting('MAX_BULK_CHEQUES')
    if not cheques:
        raise ValidationError({'cheques': 'At least one cheque is required.'})
    if len(cheques) > max_cheques:
        raise ValidationError({'cheques': f'A maximum of {max_cheques} cheques can be registered at once.'})

    seen = set()
    for cheque in cheques:
        key = ((cheque.get('cheque_number') or '').strip(), (cheque.get('bank_name') or '').strip())
        if key in seen:
            raise ValidationError({'cheques': f'Cheque {key[0]} ({key[1]}) appears more than once.'})
        seen.add(key)

    created = []
    with transaction.atomic():
        for index, cheque in enumerate(cheques, start=1):
            try:
                pdc = create_pdc(
                    tenant,
                    cheque.get('cheque_number'),
                    cheque.get('bank_name'),
                    cheque.get('amount'),
                    cheque.get('cheque_date'),
                    lease=lease,
                    invoice=invoice,
                    notes=cheque.get('notes', ''),
                    user=user,
                    today=today,
                )
            except ValidationError as e:
                raise ValidationError({'cheques': [f'Cheque {index}: {message}' for message in e.messages]})
            created.append(pdc)
    return created


def get_pdc(pk):
    return PDC.objects.select_related('tenant', 'lease', 'invoice', 'bank_account').get(pk=pk)


def filter_pdcs(params, ordering='cheque_date'):
    """
    Filtered, ordered PDC queryset. `params` is a QueryDict or dict of
    PDCFilter parameters; a repeated `status` parameter is treated like a
    comma separated list.
    """
    date_from = parse_date(params.get('date_from'), 'date_from')
    date_to = parse_date(params.get('date_to'), 'date_to')
    if date_from and date_to and date_to < date_from:
        raise InvalidDateRange(date_from, date_to)

    ordering = ordering or 'cheque_date'
    if ordering.lstrip('-') not in ORDERING_FIELDS:
        raise ValidationError({'ordering': f"Order by one of: {', '.join(ORDERING_FIELDS)}."})

    if hasattr(params, 'getlist'):
        data = params.copy()
        statuses = params.getlist('status')
        if len(statuses) > 1:
            data['status'] = ','.join(statuses)
    else:
        data = dict(params)

    queryset = PDC.objects.select_related('tenant', 'bank_account')
    filterset = PDCFilter(data, queryset=queryset)
    if not filterset.is_valid():
        raise ValidationError({field: list(errors) for field, errors in filterset.errors.items()})

    tiebreak = '-id' if ordering.startswith('-') else 'id'
    return filterset.qs.order_by(ordering, tiebreak)


def query_pdcs(params, page=1, page_size=DEFAULT_PAGE_SIZE, ordering='cheque_date'):
    """Paginated `filter_pdcs`. Returns a Page; out-of-range pages give the last page."""
    try:
        page_size = min(max(int(page_size), 1), MAX_PAGE_SIZE)
    except (TypeError, ValueError):
        page_size = DEFAULT_PAGE_SIZE
    paginator = Paginator(filter_pdcs(params, ordering), page_size)
    return paginator.get_page(page)


def apply_transition(pdc, to_status, user=None, notes='', request_id=None, **changes):
    """
    Move `pdc` to `to_status`, writing `changes` (event date, reason, bank
    account...) in the same conditional update. Returns the refreshed PDC.

    Raises IllegalTransition, ValidationError for missing transition data,
    or ConcurrentModification when the stored version/status no longer
    match the instance passed in.
    """
    from_status = pdc.status
    check_transition(from_status, to_status)

    missing = {
        field: 'This field is required.'
        for field in REQUIRED_FIELDS.get(to_status, ())
        if changes.get(field, getattr(pdc, field)) in (None, '')
    }
    if missing:
        raise ValidationError(missing)

    for field in TRANSITION_DATE_FIELDS.values():
        current = getattr(pdc, field)
        if field in changes and current is not None and changes[field] != current:
            raise ValidationError({field: 'Event dates cannot be changed once recorded.'})

    user = acting_user(user)
    values = dict(changes, status=to_status, version=F('version') + 1, updated_at=timezone.now())
    if user:
        values['updated_by'] = user

    with transaction.atomic():
        updated = PDC.objects.filter(pk=pdc.pk, version=pdc.version, status=from_status).update(**values)
        if updated != 1:
            raise ConcurrentModification(pdc.pk, pdc.version)
        try:
            with transaction.atomic():
                _append_history(pdc, from_status, to_status, user, notes, request_id)
        except IntegrityError:
            # Same request id committed by a concurrent retry
            raise ConcurrentModification(pdc.pk, pdc.version) from None
        pdc.refresh_from_db()
        _notify_on_commit(pdc, from_status, to_status, user, notes)

    logger.info(
        "PDC %s: %s -> %s (version %s) by %s",
        pdc.pdc_number, from_status, to_status, pdc.version, user or 'system',
    )
    return pdc
