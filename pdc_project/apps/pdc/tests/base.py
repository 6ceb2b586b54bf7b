"""
Shared fixtures for PDC tests.
"""
from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth.models import User

from apps.finance.models import BankAccount, Invoice
from apps.pdc import engine, store
from apps.pdc.conf import DEFAULTS
from apps.property.models import Tenant, Lease

# Pinned so a PDC_DUE_WINDOW_DAYS in the environment cannot change test outcomes
TEST_PDC_SETTINGS = dict(DEFAULTS)


class PDCSetupMixin:
    """Mixin for setting up test data."""

    @classmethod
    def setUpTestData(cls):
        cls.today = date.today()

        cls.user = User.objects.create_user(
            username='testuser',
            email='test@test.com',
            password='testpass123'
        )

        cls.bank_account = BankAccount.objects.create(
            name='Operating Account',
            account_number='1234567890',
            bank_name='Emirates NBD',
        )
        cls.inactive_bank_account = BankAccount.objects.create(
            name='Old Account',
            account_number='9999000011',
            bank_name='Mashreq',
            status='inactive',
        )

        cls.tenant_1 = Tenant.objects.create(name='Tenant One', email='tenant1@test.com')
        cls.tenant_2 = Tenant.objects.create(name='Tenant Two', email='tenant2@test.com')

        cls.lease = Lease.objects.create(
            tenant=cls.tenant_1,
            unit_reference='Tower A - 101',
            start_date=cls.today,
            end_date=cls.today + timedelta(days=365),
            annual_rent=Decimal('60000.00'),
            status='active',
        )
        cls.invoice = Invoice.objects.create(
            tenant=cls.tenant_1,
            invoice_date=cls.today,
            due_date=cls.today + timedelta(days=30),
            total_amount=Decimal('5000.00'),
        )

    # Helpers --------------------------------------------------------------

    _cheque_seq = 100000

    def make_pdc(self, days=30, tenant=None, cheque_number=None, bank_name='Emirates NBD',
                 amount=Decimal('5000.00'), **kwargs):
        """Register a cheque dated `days` from today."""
        if cheque_number is None:
            PDCSetupMixin._cheque_seq += 1
            cheque_number = str(PDCSetupMixin._cheque_seq)
        return store.create_pdc(
            tenant or self.tenant_1,
            cheque_number,
            bank_name,
            amount,
            self.today + timedelta(days=days),
            user=kwargs.pop('user', self.user),
            **kwargs
        )

    def make_due(self, days=3, **kwargs):
        return self.make_pdc(days=days, **kwargs)

    def make_deposited(self, days=3, **kwargs):
        """Deposit on the cheque date, as seen on that date."""
        pdc = self.make_due(days=days, **kwargs)
        return engine.deposit(pdc.pk, self.bank_account.pk, deposit_date=pdc.cheque_date,
                              user=self.user, today=pdc.cheque_date)

    def make_bounced(self, days=3, reason='Insufficient Funds', **kwargs):
        pdc = self.make_deposited(days=days, **kwargs)
        return engine.bounce(pdc.pk, pdc.deposit_date, reason, user=self.user, today=pdc.deposit_date)

    def statuses(self, pdc):
        return list(pdc.transitions.order_by('sequence').values_list('to_status', flat=True))
