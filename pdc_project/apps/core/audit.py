"""
Audit Logging Utility for the PDC project.
Complements the PDC status history with a cross-module audit trail
(who did what, from where) that reporting and compliance can query.
"""
import json
from decimal import Decimal

from .middleware import get_current_user, get_current_request


def get_client_ip(request):
    """Extract client IP from request."""
    if not request:
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def serialize_value(value):
    """Convert value to JSON-serializable format."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    if hasattr(value, 'pk'):
        return str(value)
    return value


def log_audit(user, action, model_name, record_id=None, changes=None, request=None):
    """
    Create an audit log entry.

    Args:
        user: The user performing the action (None for system jobs)
        action: One of AuditLog.ACTION_CHOICES
        model_name: Name of the model being modified
        record_id: Primary key of the record
        changes: Dictionary describing the change
        request: HTTP request object (optional)
    """
    from apps.core.models import AuditLog

    if user is None:
        user = get_current_user()
    if user is not None and not user.is_authenticated:
        user = None

    if request is None:
        request = get_current_request()
    ip_address = get_client_ip(request)

    if changes:
        changes = {key: serialize_value(value) for key, value in changes.items()}
        try:
            json.dumps(changes)
        except (TypeError, ValueError):
            changes = {'message': str(changes)}

    return AuditLog.objects.create(
        user=user,
        action=action,
        model=model_name,
        record_id=str(record_id) if record_id else '',
        changes=changes or {},
        ip_address=ip_address
    )


def get_entity_audit_history(model_name, record_id):
    """
    Get audit history for a specific record.
    Used for the audit section of PDC detail payloads.
    """
    from apps.core.models import AuditLog

    return AuditLog.objects.filter(
        model=model_name,
        record_id=str(record_id)
    ).select_related('user').order_by('-timestamp')
