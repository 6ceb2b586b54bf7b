"""
Utility functions for the PDC project.
"""
from datetime import date

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models.functions import Length


def generate_number(document_type, model_class, number_field='number'):
    """
    Generate a sequential number for documents.
    Format: PREFIX-YEAR-NUMBER (e.g., PDC-2026-0001)

    Args:
        document_type: Key from NUMBER_SERIES settings (e.g., 'PDC')
        model_class: The model class to query for existing numbers
        number_field: The field name that stores the number

    Returns:
        str: Generated number
    """
    config = settings.NUMBER_SERIES.get(document_type, {})
    prefix = config.get('prefix', document_type)
    padding = config.get('padding', 4)

    year = date.today().year
    year_prefix = f"{prefix}-{year}-"

    # Get the last number for this year. Longer numbers are higher once the
    # sequence outgrows its padding (PDC-2026-10000 after PDC-2026-9999).
    filter_kwargs = {f'{number_field}__startswith': year_prefix}
    last_record = (
        model_class.objects.filter(**filter_kwargs)
        .annotate(number_length=Length(number_field))
        .order_by('-number_length', f'-{number_field}')
        .first()
    )

    if last_record:
        last_number = getattr(last_record, number_field)
        try:
            last_seq = int(last_number.split('-')[-1])
        except (ValueError, IndexError):
            last_seq = 0
    else:
        last_seq = 0

    new_seq = last_seq + 1
    return f"{year_prefix}{str(new_seq).zfill(padding)}"


def parse_date(value, field_name):
    """
    Parse an ISO date coming from a request or command line.
    Returns None for empty input.
    """
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError({field_name: 'Enter a valid date (YYYY-MM-DD).'})
