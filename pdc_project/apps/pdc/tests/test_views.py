"""
PDC API view tests.
"""
import json
from datetime import timedelta
from io import BytesIO

from django.test import TestCase, override_settings
from django.urls import reverse
from openpyxl import load_workbook

from apps.core.models import AuditLog
from apps.pdc.models import PDC
from apps.pdc.states import PDCStatus
from .base import PDCSetupMixin, TEST_PDC_SETTINGS


class APIClientMixin(PDCSetupMixin):

    def setUp(self):
        self.client.login(username='testuser', password='testpass123')

    def post_json(self, name, data=None, pk=None, **extra):
        url = reverse(f'pdc:{name}', args=[pk] if pk is not None else [])
        return self.client.post(url, data=json.dumps(data or {}), content_type='application/json', **extra)

    def get_json(self, name, params=None, pk=None):
        url = reverse(f'pdc:{name}', args=[pk] if pk is not None else [])
        return self.client.get(url, params or {})


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class AccessTests(APIClientMixin, TestCase):

    def test_login_required(self):
        self.client.logout()
        response = self.client.get(reverse('pdc:pdc_list'))
        self.assertEqual(response.status_code, 302)
        self.assertIn('/admin/login/', response.url)

    def test_actions_reject_get(self):
        pdc = self.make_due()
        response = self.client.get(reverse('pdc:pdc_deposit', args=[pdc.pk]))
        self.assertEqual(response.status_code, 405)

    def test_unknown_pdc(self):
        response = self.post_json('pdc_cancel', pk=999999)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error'], 'NotFound')

    def test_malformed_json(self):
        response = self.client.post(reverse('pdc:pdc_create'), data='{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class RecordViewTests(APIClientMixin, TestCase):

    def cheque_data(self, **overrides):
        data = {
            'tenant': self.tenant_1.pk,
            'cheque_number': 'CHQ-9001',
            'bank_name': 'Emirates NBD',
            'amount': '7500.00',
            'cheque_date': (self.today + timedelta(days=30)).isoformat(),
        }
        data.update(overrides)
        return data

    def test_create(self):
        response = self.post_json('pdc_create', self.cheque_data(lease=self.lease.pk))
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['pdc']['status'], 'RECEIVED')
        self.assertEqual(body['pdc']['amount'], '7500.00')
        self.assertEqual(body['pdc']['lease_id'], self.lease.pk)
        self.assertEqual(body['pdc']['allowed_actions'], ['cancel', 'withdraw'])
        pdc = PDC.objects.get(pk=body['pdc']['id'])
        self.assertEqual(pdc.created_by, self.user)

    def test_create_accepts_form_data(self):
        response = self.client.post(reverse('pdc:pdc_create'), self.cheque_data())
        self.assertEqual(response.status_code, 201)

    def test_create_invalid(self):
        response = self.post_json('pdc_create', self.cheque_data(cheque_number='AB', amount='0'))
        self.assertEqual(response.status_code, 400)
        errors = response.json()['errors']
        self.assertIn('cheque_number', errors)
        self.assertIn('amount', errors)
        self.assertFalse(PDC.objects.exists())

    def test_create_duplicate(self):
        existing = self.make_pdc(cheque_number='CHQ-9001')
        response = self.post_json('pdc_create', self.cheque_data())
        self.assertEqual(response.status_code, 409)
        body = response.json()
        self.assertEqual(body['error'], 'DuplicateInstrument')
        self.assertEqual(body['existing_id'], existing.pk)

    def test_bulk_create(self):
        cheques = [
            {
                'cheque_number': f'BLK-{i}',
                'bank_name': 'ADCB',
                'amount': '5000.00',
                'cheque_date': (self.today + timedelta(days=30 * i)).isoformat(),
            }
            for i in range(1, 5)
        ]
        response = self.post_json('pdc_bulk_create', {'tenant': self.tenant_1.pk, 'cheques': cheques})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['count'], 4)
        self.assertEqual(PDC.objects.filter(bank_name='ADCB').count(), 4)

    def test_bulk_create_requires_list(self):
        response = self.post_json('pdc_bulk_create', {'tenant': self.tenant_1.pk, 'cheques': 'none'})
        self.assertEqual(response.status_code, 400)

    def test_list(self):
        self.make_due()
        self.make_pdc(days=40)
        self.make_pdc(days=20, tenant=self.tenant_2)
        response = self.get_json('pdc_list', {'tenant': self.tenant_1.pk, 'ordering': '-cheque_date'})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['count'], 2)
        self.assertEqual([row['status'] for row in body['results']], ['RECEIVED', 'DUE'])

    def test_list_rejects_inverted_range(self):
        response = self.get_json('pdc_list', {
            'date_from': self.today.isoformat(),
            'date_to': (self.today - timedelta(days=1)).isoformat(),
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'InvalidDateRange')

    def test_detail(self):
        pdc = self.make_bounced()
        self.post_json('pdc_replace', {
            'cheque_number': 'RPL-700',
            'bank_name': 'ADCB',
            'amount': '5000.00',
            'cheque_date': (self.today + timedelta(days=14)).isoformat(),
        }, pk=pdc.pk)
        response = self.get_json('pdc_detail', pk=pdc.pk)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(
            [row['to_status'] for row in body['history']],
            ['DUE', 'DEPOSITED', 'BOUNCED', 'REPLACED'],
        )
        self.assertEqual(len(body['replacement_chain']), 2)
        self.assertIsNone(body['settlement'])

    def test_check_duplicate(self):
        existing = self.make_pdc(cheque_number='CHQ-9002')
        params = {'tenant': self.tenant_1.pk, 'cheque_number': 'CHQ-9002', 'bank_name': 'Emirates NBD'}
        self.assertEqual(self.get_json('check_duplicate', params).json()['existing_id'], existing.pk)
        params['exclude'] = existing.pk
        self.assertFalse(self.get_json('check_duplicate', params).json()['duplicate'])

    def test_bank_list(self):
        self.make_pdc(bank_name='ADCB')
        body = self.get_json('bank_list').json()
        self.assertEqual(body['bank_names'], ['ADCB'])
        self.assertEqual([a['id'] for a in body['bank_accounts']], [self.bank_account.pk])
        self.assertEqual(body['bank_accounts'][0]['account_number'], '******7890')


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class ActionViewTests(APIClientMixin, TestCase):

    def test_deposit(self):
        pdc = self.make_due(days=0)
        response = self.post_json('pdc_deposit', {
            'bank_account': self.bank_account.pk,
            'deposit_date': self.today.isoformat(),
        }, pk=pdc.pk)
        self.assertEqual(response.status_code, 200)
        body = response.json()['pdc']
        self.assertEqual(body['status'], 'DEPOSITED')
        self.assertEqual(body['bank_account']['id'], self.bank_account.pk)
        self.assertEqual(body['allowed_actions'], ['bounce', 'clear'])

    def test_deposit_to_inactive_account(self):
        pdc = self.make_due(days=0)
        response = self.post_json('pdc_deposit', {
            'bank_account': self.inactive_bank_account.pk,
            'deposit_date': self.today.isoformat(),
        }, pk=pdc.pk)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()['error'], 'InvalidBankAccount')

    def test_illegal_transition(self):
        pdc = self.make_due()
        response = self.post_json('pdc_bounce', {
            'bounced_date': self.today.isoformat(),
            'bounce_reason': 'Signature Mismatch',
        }, pk=pdc.pk)
        self.assertEqual(response.status_code, 409)
        body = response.json()
        self.assertEqual(body['error'], 'IllegalTransition')
        self.assertEqual(body['from'], 'DUE')
        self.assertEqual(body['attempted_to'], 'BOUNCED')
        pdc.refresh_from_db()
        self.assertEqual(pdc.status, PDCStatus.DUE)

    def test_stale_version(self):
        pdc = self.make_pdc()
        response = self.post_json('pdc_cancel', {'expected_version': 3}, pk=pdc.pk)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'ConcurrentModification')

    def test_idempotency_key_header(self):
        pdc = self.make_deposited(days=0)
        data = {'cleared_date': pdc.deposit_date.isoformat()}
        first = self.post_json('pdc_clear', data, pk=pdc.pk, HTTP_IDEMPOTENCY_KEY='clear-1')
        second = self.post_json('pdc_clear', data, pk=pdc.pk, HTTP_IDEMPOTENCY_KEY='clear-1')
        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(first.json()['pdc']['version'], second.json()['pdc']['version'])
        self.assertEqual(pdc.transitions.count(), 3)

    def test_idempotency_key_reused_for_another_action(self):
        pdc = self.make_deposited(days=0)
        self.post_json('pdc_clear', {'cleared_date': self.today.isoformat()}, pk=pdc.pk,
                       HTTP_IDEMPOTENCY_KEY='action-1')
        response = self.post_json('pdc_bounce', {
            'bounced_date': self.today.isoformat(),
            'bounce_reason': 'Insufficient Funds',
        }, pk=pdc.pk, HTTP_IDEMPOTENCY_KEY='action-1')
        self.assertEqual(response.status_code, 400)
        self.assertIn('request_id', response.json()['errors'])
        pdc.refresh_from_db()
        self.assertEqual(pdc.status, PDCStatus.CLEARED)

    def test_future_deposit_date(self):
        pdc = self.make_due(days=0)
        response = self.post_json('pdc_deposit', {
            'bank_account': self.bank_account.pk,
            'deposit_date': (self.today + timedelta(days=1)).isoformat(),
        }, pk=pdc.pk)
        self.assertEqual(response.status_code, 400)
        self.assertIn('deposit_date', response.json()['errors'])

    def test_replace(self):
        pdc = self.make_bounced()
        response = self.post_json('pdc_replace', {
            'cheque_number': 'RPL-800',
            'bank_name': 'ADCB',
            'amount': '5000.00',
            'cheque_date': (self.today + timedelta(days=14)).isoformat(),
        }, pk=pdc.pk)
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['pdc']['status'], 'REPLACED')
        self.assertEqual(body['replacement']['status'], 'RECEIVED')
        self.assertEqual(body['pdc']['replacement_cheque_id'], body['replacement']['id'])

    def test_withdraw(self):
        pdc = self.make_pdc()
        response = self.post_json('pdc_withdraw', {
            'withdrawal_reason': 'Paid by transfer',
            'new_payment_method': 'BANK_TRANSFER',
            'transaction_id': 'TXN-1',
        }, pk=pdc.pk)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['pdc']['status'], 'WITHDRAWN')
        self.assertEqual(body['settlement']['method'], 'BANK_TRANSFER')
        self.assertEqual(body['settlement']['amount'], '5000.00')

        listed = self.get_json('withdrawal_list').json()['results']
        self.assertEqual([row['id'] for row in listed], [pdc.pk])

    def test_withdraw_bank_transfer_needs_transaction(self):
        pdc = self.make_pdc()
        response = self.post_json('pdc_withdraw', {
            'withdrawal_reason': 'Paid by transfer',
            'new_payment_method': 'BANK_TRANSFER',
        }, pk=pdc.pk)
        self.assertEqual(response.status_code, 400)
        self.assertIn('transaction_id', response.json()['errors'])

    def test_settlement_link(self):
        pdc = self.make_pdc()
        self.post_json('pdc_withdraw', {
            'withdrawal_reason': 'New cheque to follow',
            'new_payment_method': 'NEW_CHEQUE',
        }, pk=pdc.pk)
        pending = self.get_json('settlement_open', {'tenant': self.tenant_1.pk}).json()['results']
        self.assertEqual(len(pending), 1)

        new_pdc = self.make_pdc(days=45)
        response = self.post_json('settlement_link', {'new_pdc': new_pdc.pk}, pk=pending[0]['id'])
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['settlement']['link_status'], 'linked')

    def test_transitions_are_audited(self):
        with self.captureOnCommitCallbacks(execute=True):
            pdc = self.make_pdc()
            self.post_json('pdc_cancel', {'notes': 'Duplicate entry'}, pk=pdc.pk)
        entries = AuditLog.objects.filter(model='PDC', record_id=str(pdc.pk))
        self.assertEqual(sorted(entries.values_list('action', flat=True)), ['create', 'transition'])
        transition = entries.get(action='transition')
        self.assertEqual(transition.user, self.user)
        self.assertEqual(transition.changes['to_status'], 'CANCELLED')


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class ReportViewTests(APIClientMixin, TestCase):

    def test_dashboard(self):
        self.make_pdc(days=2)
        response = self.get_json('dashboard', {'date': self.today.isoformat()})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['due_this_week'], {'count': 1, 'total_value': '5000.00'})
        self.assertEqual(body['currency'], 'AED')
        self.assertIsNone(body['bounce_rate'])
        self.assertEqual(len(body['upcoming']), 1)

    def test_tenant_history(self):
        pdc = self.make_deposited(days=0)
        self.post_json('pdc_clear', {'cleared_date': pdc.deposit_date.isoformat()}, pk=pdc.pk)
        body = self.get_json('tenant_history', pk=self.tenant_1.pk).json()
        self.assertEqual(body['tenant_name'], 'Tenant One')
        self.assertEqual(body['cleared'], 1)
        self.assertEqual(body['bounce_rate'], 0.0)

    def test_register_export(self):
        self.make_pdc(days=10)
        self.make_bounced()
        response = self.client.get(reverse('pdc:register_export'), {'tenant': self.tenant_1.pk})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response['Content-Type'],
            'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        )
        workbook = load_workbook(BytesIO(response.content))
        self.assertEqual(workbook.sheetnames, ['PDC Register', 'Summary'])
        register = workbook['PDC Register']
        self.assertEqual(register.cell(row=4, column=1).value, 'PDC #')
        self.assertEqual(register.cell(row=7, column=1).value, 'TOTAL')
        self.assertEqual(register.cell(row=7, column=6).value, 10000.0)
        self.assertTrue(AuditLog.objects.filter(action='export', user=self.user).exists())
