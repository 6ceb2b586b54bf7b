"""
PDC domain events.

`pdc_transitioned` is sent once the transaction holding a status change has
committed, so receivers always see the new status together with its history
row. Arguments: pdc, from_status (None on creation), to_status, user, notes.
"""
from django.dispatch import Signal, receiver

from apps.core.audit import log_audit

pdc_transitioned = Signal()


@receiver(pdc_transitioned)
def audit_pdc_transition(sender, pdc, from_status, to_status, user=None, notes='', **kwargs):
    """Mirror every status change into the cross-module audit log."""
    log_audit(
        user,
        'create' if from_status is None else 'transition',
        'PDC',
        record_id=pdc.pk,
        changes={
            'pdc_number': pdc.pdc_number,
            'from_status': from_status,
            'to_status': to_status,
            'version': pdc.version,
            'notes': notes,
        },
    )
