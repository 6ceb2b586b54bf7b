"""
Tests for the sweep_due_pdcs management command.
"""
from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings

from apps.pdc.states import PDCStatus
from .base import PDCSetupMixin, TEST_PDC_SETTINGS


@override_settings(PDC_SETTINGS=TEST_PDC_SETTINGS)
class SweepDuePDCsCommandTests(PDCSetupMixin, TestCase):

    def run_command(self, *args):
        out = StringIO()
        call_command('sweep_due_pdcs', *args, stdout=out)
        return out.getvalue()

    def test_promotes_cheques_for_given_date(self):
        pdc = self.make_pdc(days=10)
        run_date = (self.today + timedelta(days=5)).isoformat()

        output = self.run_command('--date', run_date)

        pdc.refresh_from_db()
        self.assertEqual(pdc.status, PDCStatus.DUE)
        self.assertIn(f'PROMOTED: {pdc.pdc_number}', output)
        self.assertIn('Promoted: 1', output)

    def test_dry_run(self):
        pdc = self.make_pdc(days=10)
        output = self.run_command('--date', (self.today + timedelta(days=5)).isoformat(), '--dry-run')
        pdc.refresh_from_db()
        self.assertEqual(pdc.status, PDCStatus.RECEIVED)
        self.assertIn('[DRY RUN]', output)

    def test_nothing_to_do(self):
        self.make_pdc(days=30)
        output = self.run_command()
        self.assertIn('No cheques entering the due window.', output)

    def test_rerun_is_quiet(self):
        self.make_pdc(days=10)
        run_date = (self.today + timedelta(days=5)).isoformat()
        self.run_command('--date', run_date)
        output = self.run_command('--date', run_date)
        self.assertIn('No cheques entering the due window.', output)

    def test_invalid_date(self):
        with self.assertRaises(CommandError):
            self.run_command('--date', '01/03/2026')
