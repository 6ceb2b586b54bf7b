"""
Aging and dashboard figures.
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase, override_settings

from apps.pdc import aggregates, engine
from apps.pdc.exceptions import InvalidDateRange
from .base import PDCSetupMixin, TEST_PDC_SETTINGS


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class DueBucketTests(PDCSetupMixin, TestCase):

    def setUp(self):
        self.soon = self.make_pdc(days=2)
        self.later = self.make_pdc(days=10)
        self.far = self.make_pdc(days=40)

    def test_due_this_week(self):
        bucket = aggregates.due_this_week(today=self.today)
        self.assertEqual(bucket, {'count': 1, 'total_value': Decimal('5000.00')})

    def test_due_this_month(self):
        self.assertEqual(aggregates.due_this_month(today=self.today)['count'], 2)

    def test_bucket_per_tenant(self):
        self.make_pdc(days=3, tenant=self.tenant_2, amount='1200.00')
        bucket = aggregates.due_this_week(today=self.today, tenant=self.tenant_2)
        self.assertEqual(bucket, {'count': 1, 'total_value': Decimal('1200.00')})

    def test_deposited_cheques_leave_the_bucket(self):
        engine.deposit(self.soon.pk, self.bank_account.pk, deposit_date=self.soon.cheque_date,
                       today=self.soon.cheque_date)
        self.assertEqual(aggregates.due_this_week(today=self.today)['count'], 0)

    def test_empty_bucket(self):
        bucket = aggregates.due_this_week(today=self.today + timedelta(days=100))
        self.assertEqual(bucket, {'count': 0, 'total_value': Decimal('0.00')})

    def test_days_until_due_and_overdue(self):
        self.assertEqual(aggregates.days_until_due(self.later, today=self.today), 10)
        later_date = self.today + timedelta(days=12)
        self.assertEqual(aggregates.days_until_due(self.later, today=later_date), -2)
        self.assertTrue(aggregates.is_overdue_for_deposit(self.later, today=later_date))
        self.assertFalse(aggregates.is_overdue_for_deposit(self.later, today=self.today))


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class BounceRateTests(PDCSetupMixin, TestCase):

    def test_no_settled_cheques(self):
        self.make_pdc()
        self.assertIsNone(aggregates.bounce_rate())

    def test_rate(self):
        cleared = self.make_deposited()
        engine.clear(cleared.pk, cleared.deposit_date, today=cleared.deposit_date)
        self.make_bounced()
        for _ in range(2):
            pdc = self.make_deposited()
            engine.clear(pdc.pk, pdc.deposit_date, today=pdc.deposit_date)
        self.assertEqual(aggregates.bounce_rate(), Decimal('0.2500'))

    def test_replaced_bounce_still_counts(self):
        bounced = self.make_bounced()
        engine.replace(bounced.pk, 'RPL-501', 'ADCB', '5000.00', self.today + timedelta(days=14))
        self.assertEqual(aggregates.bounce_rate(tenant=self.tenant_1), Decimal('1.0000'))

    def test_period_and_tenant(self):
        self.make_bounced(tenant=self.tenant_2)
        self.assertIsNone(aggregates.bounce_rate(tenant=self.tenant_1))
        self.assertIsNone(aggregates.bounce_rate(date_from=self.today + timedelta(days=10)))
        self.assertEqual(aggregates.bounce_rate(date_to=self.today + timedelta(days=10)), Decimal('1.0000'))

    def test_inverted_range(self):
        with self.assertRaises(InvalidDateRange):
            aggregates.bounce_rate(date_from=self.today, date_to=self.today - timedelta(days=1))


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class DashboardTests(PDCSetupMixin, TestCase):

    def test_empty_dashboard(self):
        summary = aggregates.dashboard_summary(today=self.today)
        self.assertEqual(summary['due_this_week'], {'count': 0, 'total_value': Decimal('0.00')})
        self.assertEqual(summary['deposited'], {'count': 0, 'total_value': Decimal('0.00')})
        self.assertEqual(summary['outstanding_value'], Decimal('0.00'))
        self.assertIsNone(summary['bounce_rate'])
        self.assertEqual(summary['upcoming'], [])
        self.assertEqual(summary['recently_deposited'], [])
        self.assertEqual(summary['recent_bounces'], 0)

    def test_populated_dashboard(self):
        as_of = self.today + timedelta(days=5)
        self.make_bounced(days=3)
        cleared = self.make_deposited(days=3)
        engine.clear(cleared.pk, cleared.deposit_date, today=cleared.deposit_date)
        deposited = self.make_deposited(days=5)
        self.make_due(days=4)
        upcoming = self.make_pdc(days=10)
        self.make_pdc(days=40)
        withdrawn = self.make_pdc(days=50)
        engine.withdraw(withdrawn.pk, 'New cheque to follow', new_payment_method='NEW_CHEQUE')

        summary = aggregates.dashboard_summary(today=as_of)

        self.assertEqual(summary['as_of'], as_of)
        self.assertEqual(summary['due_this_week']['count'], 1)
        self.assertEqual(summary['due_this_month']['count'], 1)
        self.assertEqual(summary['deposited'], {'count': 1, 'total_value': Decimal('5000.00')})
        self.assertEqual(summary['outstanding_value'], Decimal('20000.00'))
        self.assertEqual(summary['recent_bounces'], 1)
        self.assertEqual(summary['overdue_for_deposit'], 1)
        self.assertEqual(summary['open_settlements'], 1)
        self.assertEqual(summary['bounce_rate'], Decimal('0.5000'))
        self.assertEqual(summary['upcoming'], [upcoming])
        self.assertEqual(summary['recently_deposited'], [deposited])

    def deposited_on(self, day, amount):
        """Register a cheque dated `day` three days before it, then deposit it that day."""
        pdc = self.make_pdc(days=(day - self.today).days, amount=amount, today=day - timedelta(days=3))
        return engine.deposit(pdc.pk, self.bank_account.pk, deposit_date=day, today=day)

    def test_deposited_counts_this_month_only(self):
        month_start = self.today.replace(day=1)
        self.deposited_on(month_start - timedelta(days=1), '1000.00')
        self.deposited_on(month_start, '2500.00')
        self.deposited_on(self.today + timedelta(days=1), '4000.00')

        summary = aggregates.dashboard_summary(today=self.today)

        self.assertEqual(summary['deposited'], {'count': 1, 'total_value': Decimal('2500.00')})
        self.assertEqual(summary['outstanding_value'], Decimal('7500.00'))


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class TenantHistoryTests(PDCSetupMixin, TestCase):

    def test_track_record(self):
        cleared = self.make_deposited()
        engine.clear(cleared.pk, cleared.deposit_date, today=cleared.deposit_date)
        bounced = self.make_bounced()
        engine.replace(bounced.pk, 'RPL-601', 'ADCB', '5000.00', self.today + timedelta(days=14))
        engine.cancel(self.make_pdc().pk)
        engine.withdraw(self.make_pdc().pk, 'Returned')
        self.make_pdc(tenant=self.tenant_2)

        history = aggregates.tenant_history(self.tenant_1)

        self.assertEqual(history['tenant_id'], self.tenant_1.pk)
        self.assertEqual(history['total'], 5)
        self.assertEqual(history['total_value'], Decimal('25000.00'))
        self.assertEqual(history['cleared'], 1)
        self.assertEqual(history['bounced'], 1)
        self.assertEqual(history['pending'], 1)
        self.assertEqual(history['withdrawn'], 1)
        self.assertEqual(history['cancelled'], 1)
        self.assertEqual(history['bounce_rate'], Decimal('0.5000'))

    def test_new_tenant(self):
        history = aggregates.tenant_history(self.tenant_2)
        self.assertEqual(history['total'], 0)
        self.assertEqual(history['total_value'], Decimal('0.00'))
        self.assertIsNone(history['bounce_rate'])

    def test_inverted_range(self):
        with self.assertRaises(InvalidDateRange):
            aggregates.tenant_history(self.tenant_1, date_from=self.today, date_to=self.today - timedelta(days=1))
