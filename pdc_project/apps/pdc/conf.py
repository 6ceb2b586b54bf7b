from django.conf import settings

DEFAULTS = {
    'DUE_WINDOW_DAYS': 7,
    'DEPOSIT_GRACE_DAYS': 0,
    'MAX_BULK_CHEQUES': 24,
    'RECENT_BOUNCE_DAYS': 30,
    'RECENT_DEPOSIT_DAYS': 30,
    'WEEK_DAYS': 7,
    'MONTH_DAYS': 30,
    'CURRENCY': 'AED',
}


def pdc_setting(name):
    """Read a PDC_SETTINGS entry, falling back to the built-in default."""
    return getattr(settings, 'PDC_SETTINGS', {}).get(name, DEFAULTS[name])
