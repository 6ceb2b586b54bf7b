"""
PDC status machine.

Every legal status change is listed in ALLOWED_TRANSITIONS; nothing else in
the project decides transition legality. The engine asks `check_transition`
before any write, and display code asks `can_transition`.

    RECEIVED  -> DUE, CANCELLED, WITHDRAWN
    DUE       -> DEPOSITED, WITHDRAWN
    DEPOSITED -> CLEARED, BOUNCED
    BOUNCED   -> REPLACED
    CLEARED, CANCELLED, REPLACED, WITHDRAWN are terminal.
"""
from datetime import timedelta

from django.db import models

from .exceptions import IllegalTransition


class PDCStatus(models.TextChoices):
    RECEIVED = 'RECEIVED', 'Received'
    DUE = 'DUE', 'Due'
    DEPOSITED = 'DEPOSITED', 'Deposited'
    CLEARED = 'CLEARED', 'Cleared'
    BOUNCED = 'BOUNCED', 'Bounced'
    CANCELLED = 'CANCELLED', 'Cancelled'
    REPLACED = 'REPLACED', 'Replaced'
    WITHDRAWN = 'WITHDRAWN', 'Withdrawn'


class NewPaymentMethod(models.TextChoices):
    """Alternate settlement chosen when a cheque is withdrawn."""
    BANK_TRANSFER = 'BANK_TRANSFER', 'Bank Transfer'
    CASH = 'CASH', 'Cash'
    NEW_CHEQUE = 'NEW_CHEQUE', 'New Cheque'


ALLOWED_TRANSITIONS = {
    PDCStatus.RECEIVED: frozenset({PDCStatus.DUE, PDCStatus.CANCELLED, PDCStatus.WITHDRAWN}),
    PDCStatus.DUE: frozenset({PDCStatus.DEPOSITED, PDCStatus.WITHDRAWN}),
    PDCStatus.DEPOSITED: frozenset({PDCStatus.CLEARED, PDCStatus.BOUNCED}),
    PDCStatus.BOUNCED: frozenset({PDCStatus.REPLACED}),
    PDCStatus.CLEARED: frozenset(),
    PDCStatus.CANCELLED: frozenset(),
    PDCStatus.REPLACED: frozenset(),
    PDCStatus.WITHDRAWN: frozenset(),
}

INITIAL_STATUSES = frozenset({PDCStatus.RECEIVED, PDCStatus.DUE})

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Instruments still in flight: counted as outstanding value, excluded from bounce rate.
OUTSTANDING_STATUSES = frozenset({PDCStatus.RECEIVED, PDCStatus.DUE, PDCStatus.DEPOSITED})

# Statuses that hold the (tenant, cheque number, bank) identity.
NON_TERMINAL_STATUSES = frozenset(ALLOWED_TRANSITIONS) - TERMINAL_STATUSES

# Statuses that can never be the target of a replacement or settlement link.
VOIDED_STATUSES = frozenset({PDCStatus.CANCELLED, PDCStatus.WITHDRAWN})

# Event date stamped by each transition; once set it is never cleared.
TRANSITION_DATE_FIELDS = {
    PDCStatus.DEPOSITED: 'deposit_date',
    PDCStatus.CLEARED: 'cleared_date',
    PDCStatus.BOUNCED: 'bounced_date',
    PDCStatus.WITHDRAWN: 'withdrawal_date',
}

# Data a transition cannot be executed without.
REQUIRED_FIELDS = {
    PDCStatus.DEPOSITED: ('bank_account', 'deposit_date'),
    PDCStatus.CLEARED: ('cleared_date',),
    PDCStatus.BOUNCED: ('bounced_date', 'bounce_reason'),
    PDCStatus.WITHDRAWN: ('withdrawal_date', 'withdrawal_reason'),
}


def can_transition(from_status, to_status):
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def check_transition(from_status, to_status):
    """Raise IllegalTransition unless `to_status` is reachable from `from_status`."""
    if not can_transition(from_status, to_status):
        raise IllegalTransition(from_status, to_status)


def is_terminal(status):
    return status in TERMINAL_STATUSES


def is_within_due_window(cheque_date, today, window_days):
    """A cheque is due once its date is no more than `window_days` away (or already past)."""
    return cheque_date <= today + timedelta(days=window_days)


def initial_status(cheque_date, today, window_days):
    if is_within_due_window(cheque_date, today, window_days):
        return PDCStatus.DUE
    return PDCStatus.RECEIVED
