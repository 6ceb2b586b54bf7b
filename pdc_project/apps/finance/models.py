"""
Finance Models - Company bank accounts and tenant invoices.

The PDC engine only reads these:
- BankAccount resolves a deposit destination and must be ACTIVE
- Invoice is an optional payment-matching reference on a cheque
Balances are maintained by the ledger, never by cheque transitions.
"""
from django.db import models
from decimal import Decimal
from apps.core.models import BaseModel
from apps.core.utils import generate_number


class BankAccount(BaseModel):
    """
    Company bank account used as a cheque deposit destination.
    """
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    name = models.CharField(max_length=200)
    account_number = models.CharField(max_length=50)
    bank_name = models.CharField(max_length=200)
    branch = models.CharField(max_length=200, blank=True)
    swift_code = models.CharField(max_length=20, blank=True)
    iban = models.CharField(max_length=50, blank=True)
    currency = models.CharField(max_length=10, default='AED')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} - {self.bank_name}"

    @property
    def is_usable(self):
        """Only active, non-archived accounts can receive deposits."""
        return self.is_active and self.status == 'active'

    @property
    def masked_account_number(self):
        """Account number with all but the last four digits hidden."""
        if len(self.account_number) <= 4:
            return self.account_number
        return '*' * (len(self.account_number) - 4) + self.account_number[-4:]

    @property
    def display_name(self):
        return f"{self.bank_name} ({self.masked_account_number})"


class Invoice(BaseModel):
    """
    Tenant invoice (rent, service charges).
    Referenced by cheques for payment-matching display.
    """
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('sent', 'Sent'),
        ('partial', 'Partially Paid'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('cancelled', 'Cancelled'),
    ]

    invoice_number = models.CharField(max_length=50, unique=True, editable=False)
    tenant = models.ForeignKey(
        'property.Tenant',
        on_delete=models.PROTECT,
        related_name='invoices'
    )
    invoice_date = models.DateField()
    due_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    total_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))
    paid_amount = models.DecimalField(max_digits=15, decimal_places=2, default=Decimal('0.00'))

    class Meta:
        ordering = ['-invoice_date']

    def __str__(self):
        return f"{self.invoice_number} - {self.tenant.name}"

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            self.invoice_number = generate_number('INVOICE', Invoice, 'invoice_number')
        super().save(*args, **kwargs)
