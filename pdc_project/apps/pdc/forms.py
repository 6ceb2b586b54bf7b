"""
PDC Forms - request validation for the PDC API.
Business rules live in the engine; these only coerce and check input shape.
"""
from django import forms
from django.core.exceptions import ValidationError
from decimal import Decimal

from apps.finance.models import Invoice
from apps.property.models import Tenant, Lease
from .states import NewPaymentMethod


class TransitionForm(forms.Form):
    """Fields every lifecycle action accepts."""
    notes = forms.CharField(max_length=500, required=False)
    request_id = forms.CharField(
        max_length=64,
        required=False,
        help_text='Client-generated id; resending the same id never applies the action twice'
    )
    expected_version = forms.IntegerField(
        min_value=1,
        required=False,
        help_text='Version the client last saw'
    )

    def engine_kwargs(self, user):
        return {
            'user': user,
            'notes': self.cleaned_data.get('notes', ''),
            'request_id': self.cleaned_data.get('request_id') or None,
            'expected_version': self.cleaned_data.get('expected_version'),
        }


class PDCChequeFieldsMixin(forms.Form):
    cheque_number = forms.RegexField(
        regex=r'^[A-Za-z0-9-]+$',
        min_length=3,
        max_length=50,
        error_messages={'invalid': 'Cheque number must contain only letters, numbers, and hyphens.'}
    )
    bank_name = forms.CharField(max_length=100)
    amount = forms.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.01'),
        max_value=Decimal('99999999.99')
    )
    cheque_date = forms.DateField(help_text='Date the cheque is payable')


class PDCCreateForm(PDCChequeFieldsMixin):
    """Form for registering a single PDC."""
    tenant = forms.ModelChoiceField(queryset=Tenant.objects.filter(is_active=True))
    lease = forms.ModelChoiceField(queryset=Lease.objects.filter(is_active=True), required=False)
    invoice = forms.ModelChoiceField(queryset=Invoice.objects.filter(is_active=True), required=False)
    notes = forms.CharField(max_length=500, required=False)


class PDCBulkCreateForm(forms.Form):
    """Header fields for bulk registration; the cheque rows are validated by the store."""
    tenant = forms.ModelChoiceField(queryset=Tenant.objects.filter(is_active=True))
    lease = forms.ModelChoiceField(queryset=Lease.objects.filter(is_active=True), required=False)
    invoice = forms.ModelChoiceField(queryset=Invoice.objects.filter(is_active=True), required=False)


class PDCDepositForm(TransitionForm):
    """Form for depositing a PDC to a company bank account."""
    # Resolved by the engine so an inactive account is reported as such
    bank_account = forms.IntegerField(required=False, label='Deposit to Bank')
    deposit_date = forms.DateField(required=False, help_text='Defaults to today')


class PDCClearForm(TransitionForm):
    """Form for clearing a PDC."""
    cleared_date = forms.DateField(help_text='Date cheque was cleared by bank')


class PDCBounceForm(TransitionForm):
    """Form for recording a bounced PDC."""
    bounced_date = forms.DateField(help_text='Date cheque bounced')
    bounce_reason = forms.CharField(
        max_length=255,
        help_text='Reason for bounce (e.g., Insufficient Funds, Signature Mismatch)'
    )


class PDCReplaceForm(PDCChequeFieldsMixin, TransitionForm):
    """Replacement cheque details for a bounced PDC."""


class PDCWithdrawForm(TransitionForm):
    """Form for returning an undeposited PDC to the tenant."""
    withdrawal_reason = forms.CharField(max_length=255)
    withdrawal_date = forms.DateField(required=False, help_text='Defaults to today')
    new_payment_method = forms.ChoiceField(
        choices=[('', '---------')] + list(NewPaymentMethod.choices),
        required=False
    )
    transaction_id = forms.CharField(max_length=100, required=False)
    settlement_amount = forms.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.01'),
        required=False,
        help_text='Defaults to the cheque amount'
    )
    new_pdc = forms.IntegerField(required=False, help_text='Replacement cheque for NEW_CHEQUE settlements')
    settlement_bank_account = forms.IntegerField(required=False)

    def clean(self):
        cleaned_data = super().clean()
        method = cleaned_data.get('new_payment_method')
        if method == NewPaymentMethod.BANK_TRANSFER and not cleaned_data.get('transaction_id'):
            raise ValidationError({'transaction_id': 'Transaction id is required for bank transfers.'})
        if cleaned_data.get('new_pdc') and method != NewPaymentMethod.NEW_CHEQUE:
            raise ValidationError({'new_pdc': 'Only a new-cheque settlement can reference a cheque.'})
        return cleaned_data


class SettlementLinkForm(forms.Form):
    """Attach the new cheque to a pending withdrawal settlement."""
    new_pdc = forms.IntegerField()


class DuplicateCheckForm(forms.Form):
    tenant = forms.IntegerField()
    cheque_number = forms.CharField(max_length=50)
    bank_name = forms.CharField(max_length=100)
    exclude = forms.IntegerField(required=False)
