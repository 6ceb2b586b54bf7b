"""
PDC Models - Post-Dated Cheque instruments, status history and
withdrawal settlements.

Key rules:
- `status` is written only through apps.pdc.store.apply_transition
- every status change appends one PDCStatusTransition row
- `version` is the optimistic-concurrency stamp, bumped on every write
- cheques are never deleted; CANCELLED is the only way to void one
"""
import re
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from apps.core.models import BaseModel
from apps.core.utils import generate_number
from .states import (
    PDCStatus, NewPaymentMethod, NON_TERMINAL_STATUSES, OUTSTANDING_STATUSES,
    can_transition, is_terminal,
)

CHEQUE_NUMBER_RE = re.compile(r'^[A-Za-z0-9-]+$')
MIN_CHEQUE_NUMBER_LENGTH = 3
MAX_CHEQUE_NUMBER_LENGTH = 50
MAX_BANK_NAME_LENGTH = 100
MAX_AMOUNT = Decimal('99999999.99')


class PDCQuerySet(models.QuerySet):

    def live(self):
        """Cheques still holding their (tenant, cheque number, bank) identity."""
        return self.filter(status__in=NON_TERMINAL_STATUSES)

    def outstanding(self):
        return self.filter(status__in=OUTSTANDING_STATUSES)

    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def cheque_date_between(self, start, end):
        return self.filter(cheque_date__gte=start, cheque_date__lte=end)

    def total_amount(self):
        return self.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')


class PDC(BaseModel):
    """
    Post-Dated Cheque received from a tenant as a rent guarantee.

    A cheque number is unique per tenant and bank among live cheques
    (RECEIVED, DUE, DEPOSITED, BOUNCED); once a cheque reaches a terminal
    status the same number may be registered again.
    """
    pdc_number = models.CharField(max_length=50, unique=True, editable=False)

    # Cheque details - immutable after creation
    cheque_number = models.CharField(max_length=50)
    bank_name = models.CharField(max_length=100)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    cheque_date = models.DateField(help_text='Date the cheque is payable')

    # Collaborators
    tenant = models.ForeignKey('property.Tenant', on_delete=models.PROTECT, related_name='pdcs')
    lease = models.ForeignKey(
        'property.Lease',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='pdcs'
    )
    invoice = models.ForeignKey(
        'finance.Invoice',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='pdcs'
    )
    bank_account = models.ForeignKey(
        'finance.BankAccount',
        on_delete=models.PROTECT,
        null=True, blank=True,
        related_name='deposited_pdcs',
        help_text='Deposit destination'
    )

    # Status tracking
    status = models.CharField(max_length=20, choices=PDCStatus.choices, default=PDCStatus.RECEIVED)
    version = models.PositiveIntegerField(default=1)

    # Event dates - set once by the matching transition
    deposit_date = models.DateField(null=True, blank=True)
    cleared_date = models.DateField(null=True, blank=True)
    bounced_date = models.DateField(null=True, blank=True)
    bounce_reason = models.CharField(max_length=255, blank=True)
    withdrawal_date = models.DateField(null=True, blank=True)
    withdrawal_reason = models.CharField(max_length=255, blank=True)
    new_payment_method = models.CharField(max_length=20, choices=NewPaymentMethod.choices, blank=True)
    transaction_id = models.CharField(max_length=100, blank=True)

    # Replacement chain
    replacement_cheque = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True, blank=True,
        related_name='+',
        help_text='Cheque that replaced this one after a bounce'
    )
    original_cheque = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True, blank=True,
        related_name='+',
        help_text='Bounced cheque this one replaces'
    )

    notes = models.CharField(max_length=500, blank=True)

    objects = PDCQuerySet.as_manager()

    class Meta:
        ordering = ['cheque_date', 'id']
        verbose_name = 'PDC'
        verbose_name_plural = 'PDCs'
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'cheque_number', 'bank_name'],
                condition=Q(status__in=sorted(NON_TERMINAL_STATUSES)),
                name='unique_live_pdc_per_tenant'
            ),
            models.UniqueConstraint(
                fields=['replacement_cheque'],
                condition=Q(replacement_cheque__isnull=False),
                name='pdc_single_replacement'
            ),
            models.UniqueConstraint(
                fields=['original_cheque'],
                condition=Q(original_cheque__isnull=False),
                name='pdc_single_original'
            ),
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name='pdc_amount_positive'
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'cheque_date'], name='pdc_status_cheque_date_idx'),
            models.Index(fields=['bank_name'], name='pdc_bank_name_idx'),
        ]

    def __str__(self):
        return f"PDC {self.pdc_number} - {self.cheque_number} ({self.tenant.name})"

    def save(self, *args, **kwargs):
        if not self.pdc_number:
            self.pdc_number = generate_number('PDC', PDC, 'pdc_number')
        super().save(*args, **kwargs)

    def clean(self):
        """Validate cheque details. Dates relative to today are checked by the store."""
        errors = {}
        cheque_number = (self.cheque_number or '').strip()
        if len(cheque_number) < MIN_CHEQUE_NUMBER_LENGTH:
            errors['cheque_number'] = f'Cheque number must be at least {MIN_CHEQUE_NUMBER_LENGTH} characters.'
        elif len(cheque_number) > MAX_CHEQUE_NUMBER_LENGTH:
            errors['cheque_number'] = f'Cheque number cannot exceed {MAX_CHEQUE_NUMBER_LENGTH} characters.'
        elif not CHEQUE_NUMBER_RE.match(cheque_number):
            errors['cheque_number'] = 'Cheque number must contain only letters, numbers, and hyphens.'

        if not (self.bank_name or '').strip():
            errors['bank_name'] = 'Bank name is required.'
        elif len(self.bank_name.strip()) > MAX_BANK_NAME_LENGTH:
            errors['bank_name'] = f'Bank name cannot exceed {MAX_BANK_NAME_LENGTH} characters.'

        if self.amount is None:
            errors['amount'] = 'Amount is required.'
        elif self.amount <= 0:
            errors['amount'] = 'Amount must be positive.'
        elif self.amount > MAX_AMOUNT:
            errors['amount'] = f'Amount cannot exceed {MAX_AMOUNT:,}.'

        if self.cheque_date is None:
            errors['cheque_date'] = 'Cheque date is required.'

        if self.lease_id and self.tenant_id and self.lease.tenant_id != self.tenant_id:
            errors['lease'] = 'Lease belongs to a different tenant.'
        if self.invoice_id and self.tenant_id and self.invoice.tenant_id != self.tenant_id:
            errors['invoice'] = 'Invoice belongs to a different tenant.'

        if errors:
            raise ValidationError(errors)

    # Transition guards, all derived from the status table

    @property
    def can_deposit(self):
        return can_transition(self.status, PDCStatus.DEPOSITED)

    @property
    def can_clear(self):
        return can_transition(self.status, PDCStatus.CLEARED)

    @property
    def can_bounce(self):
        return can_transition(self.status, PDCStatus.BOUNCED)

    @property
    def can_replace(self):
        return can_transition(self.status, PDCStatus.REPLACED)

    @property
    def can_withdraw(self):
        return can_transition(self.status, PDCStatus.WITHDRAWN)

    @property
    def can_cancel(self):
        return can_transition(self.status, PDCStatus.CANCELLED)

    @property
    def is_final(self):
        return is_terminal(self.status)


class PDCStatusTransition(models.Model):
    """
    Append-only status history. One row per status change, including the
    creation row (from_status is null). Rows are never updated or deleted.
    """
    pdc = models.ForeignKey(PDC, on_delete=models.PROTECT, related_name='transitions')
    sequence = models.PositiveIntegerField()
    from_status = models.CharField(max_length=20, choices=PDCStatus.choices, null=True, blank=True)
    to_status = models.CharField(max_length=20, choices=PDCStatus.choices)
    transitioned_at = models.DateTimeField(default=timezone.now)
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='pdc_transitions',
        help_text='Empty for system transitions (due-window sweep)'
    )
    notes = models.TextField(blank=True)
    request_id = models.CharField(
        max_length=64,
        null=True, blank=True,
        unique=True,
        help_text='Client request id; a retried request never writes twice'
    )

    class Meta:
        ordering = ['pdc', 'sequence']
        constraints = [
            models.UniqueConstraint(fields=['pdc', 'sequence'], name='unique_pdc_transition_sequence'),
        ]

    def __str__(self):
        return f"{self.pdc_id} #{self.sequence}: {self.from_status or '-'} -> {self.to_status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Status history is append-only.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Status history is append-only.')


class WithdrawalSettlement(BaseModel):
    """
    Alternate settlement recorded when a cheque is withdrawn and the tenant
    pays by other means. A NEW_CHEQUE settlement stays pending until the new
    cheque is registered and linked.
    """
    LINK_NOT_REQUIRED = 'not_required'
    LINK_PENDING = 'pending_link'
    LINK_LINKED = 'linked'
    LINK_STATUS_CHOICES = [
        (LINK_NOT_REQUIRED, 'Not Required'),
        (LINK_PENDING, 'Pending Link'),
        (LINK_LINKED, 'Linked'),
    ]

    pdc = models.OneToOneField(PDC, on_delete=models.PROTECT, related_name='withdrawal_settlement')
    tenant = models.ForeignKey('property.Tenant', on_delete=models.PROTECT, related_name='withdrawal_settlements')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=20, choices=NewPaymentMethod.choices)
    transaction_id = models.CharField(max_length=100, blank=True)
    bank_account = models.ForeignKey(
        'finance.BankAccount',
        on_delete=models.PROTECT,
        null=True, blank=True,
        related_name='withdrawal_settlements',
        help_text='Receiving account for bank transfers'
    )
    new_pdc = models.OneToOneField(
        PDC,
        on_delete=models.PROTECT,
        null=True, blank=True,
        related_name='settles_withdrawal'
    )
    link_status = models.CharField(max_length=20, choices=LINK_STATUS_CHOICES, default=LINK_NOT_REQUIRED)
    linked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant'],
                condition=Q(link_status='pending_link'),
                name='one_pending_settlement_per_tenant'
            ),
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name='settlement_amount_positive'
            ),
        ]

    def __str__(self):
        return f"Settlement for {self.pdc.pdc_number} ({self.get_method_display()})"

    @property
    def is_pending_link(self):
        return self.link_status == self.LINK_PENDING
