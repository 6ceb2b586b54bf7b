"""
PDC State Machine Engine - the lifecycle operations.

Each operation loads the cheque, validates its inputs, and hands the write
to store.apply_transition. Common keyword arguments:

    user              acting user (None for system jobs)
    notes             free text stored on the history row
    request_id        client id; a retried request returns the committed
                      state instead of writing again
    expected_version  version the client last read; a mismatch raises
                      ConcurrentModification before anything is written
    today             reference date; event dates default to it and may not
                      be later than it

User-initiated operations are never retried on conflict. Only the due
window sweep re-reads and retries, once.
"""
import logging
from datetime import date, timedelta

from django.core.exceptions import ValidationError
from django.db import transaction

from apps.core.utils import parse_date
from apps.finance.models import BankAccount
from . import store
from .chains import record_withdrawal_settlement
from .conf import pdc_setting
from .exceptions import ConcurrentModification, InvalidBankAccount, PDCError
from .models import PDC
from .states import PDCStatus, NewPaymentMethod, check_transition, is_within_due_window

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 255
MAX_TRANSACTION_ID_LENGTH = 100


def _begin(pk, target, request_id=None, expected_version=None):
    """
    Load the PDC for an operation moving it to `target`. Returns
    (pdc, replayed); `replayed` is True when `request_id` has already been
    applied to this PDC for the same target.
    """
    pdc = store.get_pdc(pk)
    previous = store.find_replay(pdc.pk, request_id)
    if previous is not None:
        if previous.to_status != target:
            raise ValidationError({
                'request_id': f'Request id was already used to move this PDC to {previous.to_status}.'
            })
        logger.info("PDC %s: request %s already applied, returning current state", pdc.pdc_number, request_id)
        return pdc, True
    if expected_version not in (None, ''):
        try:
            expected_version = int(expected_version)
        except (TypeError, ValueError):
            raise ValidationError({'expected_version': 'Enter a whole number.'}) from None
        if expected_version != pdc.version:
            raise ConcurrentModification(pdc.pk, expected_version)
    return pdc, False


def _check_not_future(value, field_name, label, today):
    if value > today:
        raise ValidationError({field_name: f'{label} cannot be in the future.'})


def _resolve_bank_account(bank_account_id):
    try:
        account = BankAccount.objects.get(pk=bank_account_id)
    except (BankAccount.DoesNotExist, ValueError, TypeError):
        raise InvalidBankAccount(bank_account_id) from None
    if not account.is_usable:
        raise InvalidBankAccount(bank_account_id, reason='account is not active')
    return account


def _clean_text(value, field_name, label, required=True, max_length=MAX_REASON_LENGTH):
    value = (value or '').strip()
    if required and not value:
        raise ValidationError({field_name: f'{label} is required.'})
    if len(value) > max_length:
        raise ValidationError({field_name: f'{label} cannot exceed {max_length} characters.'})
    return value


# =============================================================================
# Due window
# =============================================================================

def promote_to_due(pk, today=None, user=None, notes='', request_id=None, expected_version=None):
    """RECEIVED -> DUE once the cheque date is inside the due window."""
    today = today or date.today()
    window = pdc_setting('DUE_WINDOW_DAYS')
    pdc, replayed = _begin(pk, PDCStatus.DUE, request_id, expected_version)
    if replayed:
        return pdc
    check_transition(pdc.status, PDCStatus.DUE)
    if not is_within_due_window(pdc.cheque_date, today, window):
        raise ValidationError({'cheque_date': f'Cheque is not yet within the {window}-day due window.'})
    return store.apply_transition(
        pdc, PDCStatus.DUE,
        user=user,
        notes=notes or f'Entered {window}-day due window',
        request_id=request_id,
    )


def _promote_with_retry(pk, today, window):
    """Promote one cheque, re-reading and retrying once on a version conflict."""
    for attempt in range(2):
        pdc = PDC.objects.get(pk=pk)
        if pdc.status != PDCStatus.RECEIVED or not is_within_due_window(pdc.cheque_date, today, window):
            return False
        try:
            store.apply_transition(pdc, PDCStatus.DUE, notes=f'Entered {window}-day due window')
            return True
        except ConcurrentModification:
            if attempt:
                raise
            logger.warning("Due sweep: PDC %s changed while promoting, retrying", pdc.pdc_number)
    return False


def sweep_due_window(today=None, dry_run=False):
    """
    Promote every RECEIVED cheque whose date is within the due window.
    Cheques whose date has already passed are promoted too, so a missed
    run catches up. Running it twice for the same day writes nothing the
    second time.

    Returns a dict with the run date and the promoted, skipped and failed
    PDC ids (failed maps id -> message).
    """
    today = today or date.today()
    window = pdc_setting('DUE_WINDOW_DAYS')
    horizon = today + timedelta(days=window)

    candidates = list(
        PDC.objects.filter(status=PDCStatus.RECEIVED, cheque_date__lte=horizon)
        .order_by('cheque_date', 'id')
        .values_list('pk', flat=True)
    )
    result = {'date': today, 'checked': len(candidates), 'promoted': [], 'skipped': [], 'failed': {}}

    for pk in candidates:
        if dry_run:
            result['promoted'].append(pk)
            continue
        try:
            if _promote_with_retry(pk, today, window):
                result['promoted'].append(pk)
            else:
                result['skipped'].append(pk)
        except (PDCError, ValidationError) as e:
            logger.error("Due sweep: PDC %s not promoted: %s", pk, e)
            result['failed'][pk] = str(e)

    logger.info(
        "Due sweep for %s (window %s days%s): %s checked, %s promoted, %s skipped, %s failed",
        today, window, ', dry run' if dry_run else '', result['checked'],
        len(result['promoted']), len(result['skipped']), len(result['failed']),
    )
    return result


# =============================================================================
# User transitions
# =============================================================================

def deposit(pk, bank_account_id, deposit_date=None, user=None, notes='', request_id=None,
            expected_version=None, today=None):
    """DUE -> DEPOSITED into an active company bank account."""
    today = today or date.today()
    pdc, replayed = _begin(pk, PDCStatus.DEPOSITED, request_id, expected_version)
    if replayed:
        return pdc
    check_transition(pdc.status, PDCStatus.DEPOSITED)

    if not bank_account_id:
        raise ValidationError({'bank_account': 'Bank account is required for deposit.'})
    bank_account = _resolve_bank_account(bank_account_id)

    deposit_date = parse_date(deposit_date, 'deposit_date') or today
    _check_not_future(deposit_date, 'deposit_date', 'Deposit date', today)
    earliest = pdc.cheque_date - timedelta(days=pdc_setting('DEPOSIT_GRACE_DAYS'))
    if deposit_date < earliest:
        raise ValidationError({'deposit_date': f'Cheque cannot be deposited before {earliest:%Y-%m-%d}.'})

    return store.apply_transition(
        pdc, PDCStatus.DEPOSITED,
        user=user,
        notes=notes or f'Deposited to {bank_account.display_name}',
        request_id=request_id,
        bank_account=bank_account,
        deposit_date=deposit_date,
    )


def clear(pk, cleared_date, user=None, notes='', request_id=None, expected_version=None, today=None):
    """DEPOSITED -> CLEARED."""
    today = today or date.today()
    pdc, replayed = _begin(pk, PDCStatus.CLEARED, request_id, expected_version)
    if replayed:
        return pdc
    check_transition(pdc.status, PDCStatus.CLEARED)

    cleared_date = parse_date(cleared_date, 'cleared_date')
    if cleared_date is None:
        raise ValidationError({'cleared_date': 'Cleared date is required.'})
    _check_not_future(cleared_date, 'cleared_date', 'Cleared date', today)
    if pdc.deposit_date and cleared_date < pdc.deposit_date:
        raise ValidationError({'cleared_date': 'Cleared date cannot be before the deposit date.'})

    return store.apply_transition(
        pdc, PDCStatus.CLEARED,
        user=user,
        notes=notes or 'Cleared by bank',
        request_id=request_id,
        cleared_date=cleared_date,
    )


def bounce(pk, bounced_date, bounce_reason, user=None, notes='', request_id=None, expected_version=None,
           today=None):
    """DEPOSITED -> BOUNCED. Only a deposited cheque can bounce."""
    today = today or date.today()
    pdc, replayed = _begin(pk, PDCStatus.BOUNCED, request_id, expected_version)
    if replayed:
        return pdc
    check_transition(pdc.status, PDCStatus.BOUNCED)

    errors = {}
    bounced_date = parse_date(bounced_date, 'bounced_date')
    if bounced_date is None:
        errors['bounced_date'] = 'Bounce date is required.'
    elif bounced_date > today:
        errors['bounced_date'] = 'Bounce date cannot be in the future.'
    elif pdc.deposit_date and bounced_date < pdc.deposit_date:
        errors['bounced_date'] = 'Bounce date cannot be before the deposit date.'
    try:
        bounce_reason = _clean_text(bounce_reason, 'bounce_reason', 'Bounce reason')
    except ValidationError as e:
        errors.update(e.message_dict)
    if errors:
        raise ValidationError(errors)

    return store.apply_transition(
        pdc, PDCStatus.BOUNCED,
        user=user,
        notes=notes or f'Bounced: {bounce_reason}',
        request_id=request_id,
        bounced_date=bounced_date,
        bounce_reason=bounce_reason,
    )


def replace(pk, cheque_number, bank_name, amount, cheque_date, notes='', user=None, request_id=None,
            expected_version=None, today=None):
    """
    BOUNCED -> REPLACED, registering the replacement cheque and linking the
    two in one transaction. Returns (original, replacement).
    """
    original, replayed = _begin(pk, PDCStatus.REPLACED, request_id, expected_version)
    if replayed:
        return original, original.replacement_cheque
    check_transition(original.status, PDCStatus.REPLACED)

    with transaction.atomic():
        original = store.apply_transition(
            original, PDCStatus.REPLACED,
            user=user,
            notes=notes or f'Replaced by cheque {(cheque_number or "").strip()}',
            request_id=request_id,
        )
        replacement = store.create_pdc(
            original.tenant,
            cheque_number,
            bank_name,
            amount,
            cheque_date,
            lease=original.lease,
            invoice=original.invoice,
            notes=notes or f'Replacement for {original.pdc_number}',
            user=user,
            today=today,
            original_cheque=original,
        )
    return original, replacement


def withdraw(pk, withdrawal_reason, withdrawal_date=None, new_payment_method=None, transaction_id='',
             settlement_amount=None, new_pdc_id=None, settlement_bank_account_id=None,
             user=None, notes='', request_id=None, expected_version=None, today=None):
    """
    RECEIVED/DUE -> WITHDRAWN, returning the cheque to the tenant. With a
    `new_payment_method` the alternate settlement is recorded as well.
    """
    today = today or date.today()
    pdc, replayed = _begin(pk, PDCStatus.WITHDRAWN, request_id, expected_version)
    if replayed:
        return pdc
    check_transition(pdc.status, PDCStatus.WITHDRAWN)

    errors = {}
    method = new_payment_method or ''
    try:
        withdrawal_reason = _clean_text(withdrawal_reason, 'withdrawal_reason', 'Withdrawal reason')
    except ValidationError as e:
        errors.update(e.message_dict)
    try:
        transaction_id = _clean_text(transaction_id, 'transaction_id', 'Transaction id',
                                     required=method == NewPaymentMethod.BANK_TRANSFER,
                                     max_length=MAX_TRANSACTION_ID_LENGTH)
    except ValidationError as e:
        errors.update(e.message_dict)
    if method and method not in NewPaymentMethod.values:
        errors['new_payment_method'] = 'Select a valid payment method.'
    elif not method and (new_pdc_id or settlement_amount or settlement_bank_account_id):
        errors['new_payment_method'] = 'Select how the withdrawn cheque is being settled.'
    elif new_pdc_id and method != NewPaymentMethod.NEW_CHEQUE:
        errors['new_pdc'] = 'Only a new-cheque settlement can reference a cheque.'
    if errors:
        raise ValidationError(errors)

    withdrawal_date = parse_date(withdrawal_date, 'withdrawal_date') or today
    _check_not_future(withdrawal_date, 'withdrawal_date', 'Withdrawal date', today)

    new_pdc = None
    if new_pdc_id:
        try:
            new_pdc = PDC.objects.get(pk=new_pdc_id)
        except (PDC.DoesNotExist, ValueError, TypeError):
            raise ValidationError({'new_pdc': 'Cheque not found.'}) from None
    bank_account = _resolve_bank_account(settlement_bank_account_id) if settlement_bank_account_id else None

    with transaction.atomic():
        pdc = store.apply_transition(
            pdc, PDCStatus.WITHDRAWN,
            user=user,
            notes=notes or f'Withdrawn: {withdrawal_reason}',
            request_id=request_id,
            withdrawal_date=withdrawal_date,
            withdrawal_reason=withdrawal_reason,
            new_payment_method=method,
            transaction_id=transaction_id,
        )
        if method:
            record_withdrawal_settlement(
                pdc, method,
                amount=settlement_amount,
                transaction_id=transaction_id,
                new_pdc=new_pdc,
                bank_account=bank_account,
                user=user,
            )
    return pdc


def cancel(pk, user=None, notes='', request_id=None, expected_version=None):
    """RECEIVED -> CANCELLED. The only way to void a cheque."""
    pdc, replayed = _begin(pk, PDCStatus.CANCELLED, request_id, expected_version)
    if replayed:
        return pdc
    return store.apply_transition(
        pdc, PDCStatus.CANCELLED,
        user=user,
        notes=notes or 'Cancelled',
        request_id=request_id,
    )
