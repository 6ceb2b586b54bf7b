"""
Replacement & withdrawal chain tracking.

Each PDC is a node; `original_cheque` / `replacement_cheque` are the two
directions of one edge. Edges are validated when they are inserted (no
self links, no second edge on either end, same tenant, voided cheques never
targeted, no cycles) and written with conditional updates, so a chain read
back later is either consistent or reported as BrokenChainReference.

Withdrawal settlements record how a withdrawn cheque was paid instead. A
NEW_CHEQUE settlement whose cheque is not registered yet stays pending and
is linked later; a tenant can have at most one pending settlement.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.core.audit import log_audit
from .exceptions import BrokenChainReference, ConcurrentModification
from .models import PDC, WithdrawalSettlement
from .states import PDCStatus, NewPaymentMethod, INITIAL_STATUSES, VOIDED_STATUSES

logger = logging.getLogger(__name__)


def _broken(pdc_id, detail):
    logger.error("Replacement chain integrity failure at PDC %s: %s", pdc_id, detail)
    return BrokenChainReference(pdc_id, detail)


def _fetch_link(from_pdc, target_id, direction):
    try:
        return PDC.objects.select_related('tenant').get(pk=target_id)
    except PDC.DoesNotExist:
        raise _broken(from_pdc.pk, f"{direction} cheque {target_id} does not exist") from None


def get_replacement_chain(pk):
    """
    Full replacement chain containing PDC `pk`, ordered from the first
    bounced original to the latest replacement.
    """
    start = PDC.objects.select_related('tenant').get(pk=pk)
    seen = {start.pk}

    earlier = []
    node = start
    while node.original_cheque_id:
        parent = _fetch_link(node, node.original_cheque_id, 'original')
        if parent.pk in seen:
            raise _broken(node.pk, 'cycle in replacement chain')
        if parent.replacement_cheque_id != node.pk:
            raise _broken(parent.pk, f"does not point forward to replacement {node.pk}")
        if parent.status != PDCStatus.REPLACED:
            raise _broken(parent.pk, f"has a replacement but status is {parent.status}")
        seen.add(parent.pk)
        earlier.append(parent)
        node = parent

    chain = list(reversed(earlier))
    chain.append(start)

    node = start
    while True:
        if not node.replacement_cheque_id:
            if node.status == PDCStatus.REPLACED:
                raise _broken(node.pk, 'replaced without a replacement cheque')
            break
        child = _fetch_link(node, node.replacement_cheque_id, 'replacement')
        if child.pk in seen:
            raise _broken(node.pk, 'cycle in replacement chain')
        if child.original_cheque_id != node.pk:
            raise _broken(child.pk, f"does not point back to original {node.pk}")
        if node.status != PDCStatus.REPLACED:
            raise _broken(node.pk, f"has a replacement but status is {node.status}")
        seen.add(child.pk)
        chain.append(child)
        node = child

    return chain


def _ancestor_ids(pdc):
    """Ids reached by walking `original_cheque` back from `pdc`."""
    ancestors = []
    seen = {pdc.pk}
    ancestor_id = pdc.original_cheque_id
    while ancestor_id:
        if ancestor_id in seen:
            raise _broken(pdc.pk, 'cycle in replacement chain')
        seen.add(ancestor_id)
        ancestors.append(ancestor_id)
        ancestor_id = PDC.objects.filter(pk=ancestor_id).values_list('original_cheque_id', flat=True).first()
    return ancestors


def link_replacement(original, replacement):
    """
    Insert the edge original -> replacement. The original must already be
    REPLACED (see engine.replace). Returns both refreshed instances.
    """
    errors = {}
    if original.pk == replacement.pk:
        errors['replacement_cheque'] = 'A cheque cannot replace itself.'
    elif original.status != PDCStatus.REPLACED:
        errors['original_cheque'] = f'Cheque {original.pdc_number} has not been replaced.'
    elif original.replacement_cheque_id:
        errors['original_cheque'] = f'Cheque {original.pdc_number} already has a replacement.'
    elif replacement.original_cheque_id:
        errors['replacement_cheque'] = f'Cheque {replacement.pdc_number} already replaces another cheque.'
    elif replacement.status in VOIDED_STATUSES:
        errors['replacement_cheque'] = f'A {replacement.get_status_display().lower()} cheque cannot be a replacement.'
    elif replacement.tenant_id != original.tenant_id:
        errors['replacement_cheque'] = 'Replacement cheque belongs to a different tenant.'
    elif replacement.pk in _ancestor_ids(original):
        errors['replacement_cheque'] = 'Linking these cheques would create a cycle.'
    if errors:
        raise ValidationError(errors)

    now = timezone.now()
    with transaction.atomic():
        forward = PDC.objects.filter(
            pk=original.pk, status=PDCStatus.REPLACED, replacement_cheque__isnull=True
        ).update(replacement_cheque=replacement, version=F('version') + 1, updated_at=now)
        if forward != 1:
            raise ConcurrentModification(original.pk)
        backward = PDC.objects.filter(
            pk=replacement.pk, original_cheque__isnull=True
        ).update(original_cheque=original, version=F('version') + 1, updated_at=now)
        if backward != 1:
            raise ConcurrentModification(replacement.pk)

        log_audit(None, 'link', 'PDC', record_id=original.pk, changes={
            'original_cheque': original.pdc_number,
            'replacement_cheque': replacement.pdc_number,
        })

    original.refresh_from_db()
    replacement.refresh_from_db()
    logger.info("PDC %s replaced by %s", original.pdc_number, replacement.pdc_number)
    return original, replacement


def _validate_settlement_cheque(withdrawn, new_pdc, settlement=None):
    if new_pdc.pk == withdrawn.pk:
        raise ValidationError({'new_pdc': 'The withdrawn cheque cannot settle itself.'})
    if new_pdc.tenant_id != withdrawn.tenant_id:
        raise ValidationError({'new_pdc': 'New cheque belongs to a different tenant.'})
    if new_pdc.status not in INITIAL_STATUSES:
        raise ValidationError({'new_pdc': f'Cheque {new_pdc.pdc_number} is {new_pdc.get_status_display().lower()}; '
                                          'only a cheque not yet deposited can settle a withdrawal.'})
    used = WithdrawalSettlement.objects.filter(new_pdc=new_pdc)
    if settlement is not None:
        used = used.exclude(pk=settlement.pk)
    if used.exists():
        raise ValidationError({'new_pdc': f'Cheque {new_pdc.pdc_number} already settles another withdrawal.'})


def record_withdrawal_settlement(pdc, method, amount=None, transaction_id='', new_pdc=None,
                                 bank_account=None, user=None):
    """Record the alternate payment for a withdrawn cheque."""
    from .store import to_amount

    if pdc.status != PDCStatus.WITHDRAWN:
        raise ValidationError({'pdc': 'Settlements can only be recorded for withdrawn cheques.'})
    if method not in NewPaymentMethod.values:
        raise ValidationError({'new_payment_method': 'Select a valid payment method.'})
    transaction_id = (transaction_id or '').strip()
    if method == NewPaymentMethod.BANK_TRANSFER and not transaction_id:
        raise ValidationError({'transaction_id': 'Transaction id is required for bank transfers.'})
    if new_pdc is not None and method != NewPaymentMethod.NEW_CHEQUE:
        raise ValidationError({'new_pdc': 'Only a new-cheque settlement can reference a cheque.'})
    if WithdrawalSettlement.objects.filter(pdc=pdc).exists():
        raise ValidationError({'pdc': f'Cheque {pdc.pdc_number} already has a settlement.'})

    amount = to_amount(pdc.amount if amount in (None, '') else amount, 'settlement_amount')

    if new_pdc is not None:
        _validate_settlement_cheque(pdc, new_pdc)

    if method != NewPaymentMethod.NEW_CHEQUE:
        link_status = WithdrawalSettlement.LINK_NOT_REQUIRED
    elif new_pdc is not None:
        link_status = WithdrawalSettlement.LINK_LINKED
    else:
        link_status = WithdrawalSettlement.LINK_PENDING
        if WithdrawalSettlement.objects.filter(tenant_id=pdc.tenant_id, link_status=link_status).exists():
            raise ValidationError({
                'new_payment_method': 'Tenant already has a withdrawal awaiting its replacement cheque.'
            })

    try:
        with transaction.atomic():
            settlement = WithdrawalSettlement.objects.create(
                pdc=pdc,
                tenant_id=pdc.tenant_id,
                amount=amount,
                method=method,
                transaction_id=transaction_id,
                bank_account=bank_account,
                new_pdc=new_pdc,
                link_status=link_status,
                linked_at=timezone.now() if new_pdc is not None else None,
            )
    except IntegrityError:
        raise ConcurrentModification(pdc.pk) from None

    log_audit(user, 'create', 'WithdrawalSettlement', record_id=settlement.pk, changes={
        'pdc_number': pdc.pdc_number,
        'method': method,
        'amount': amount,
        'link_status': link_status,
    })
    logger.info("Withdrawal settlement %s recorded for PDC %s (%s, %s)",
                settlement.pk, pdc.pdc_number, method, link_status)
    return settlement


def link_settlement_cheque(settlement_pk, new_pdc_id, user=None):
    """Attach the newly registered cheque to a pending NEW_CHEQUE settlement."""
    settlement = WithdrawalSettlement.objects.select_related('pdc').get(pk=settlement_pk)
    if settlement.link_status != WithdrawalSettlement.LINK_PENDING:
        raise ValidationError({'settlement': 'Settlement is not awaiting a cheque.'})

    try:
        new_pdc = PDC.objects.get(pk=new_pdc_id)
    except (PDC.DoesNotExist, ValueError, TypeError):
        raise ValidationError({'new_pdc': 'Cheque not found.'}) from None
    _validate_settlement_cheque(settlement.pdc, new_pdc, settlement=settlement)

    now = timezone.now()
    try:
        with transaction.atomic():
            updated = WithdrawalSettlement.objects.filter(
                pk=settlement.pk, link_status=WithdrawalSettlement.LINK_PENDING
            ).update(new_pdc=new_pdc, link_status=WithdrawalSettlement.LINK_LINKED, linked_at=now, updated_at=now)
    except IntegrityError:
        raise ValidationError({'new_pdc': f'Cheque {new_pdc.pdc_number} already settles another withdrawal.'}) from None
    if updated != 1:
        raise ConcurrentModification(settlement.pdc_id)

    settlement.refresh_from_db()
    log_audit(user, 'link', 'WithdrawalSettlement', record_id=settlement.pk, changes={
        'pdc_number': settlement.pdc.pdc_number,
        'new_pdc': new_pdc.pdc_number,
    })
    logger.info("Withdrawal settlement %s linked to PDC %s", settlement.pk, new_pdc.pdc_number)
    return settlement


def open_settlements(tenant=None):
    """NEW_CHEQUE settlements still waiting for their cheque."""
    settlements = WithdrawalSettlement.objects.filter(
        link_status=WithdrawalSettlement.LINK_PENDING
    ).select_related('pdc', 'tenant')
    if tenant is not None:
        settlements = settlements.filter(tenant=tenant)
    return settlements
