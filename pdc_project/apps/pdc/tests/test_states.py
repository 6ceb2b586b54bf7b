"""
Status machine table tests. No database needed.
"""
from datetime import date, timedelta

from django.test import SimpleTestCase

from apps.pdc.exceptions import IllegalTransition
from apps.pdc.states import (
    ALLOWED_TRANSITIONS, PDCStatus, TERMINAL_STATUSES, NON_TERMINAL_STATUSES,
    can_transition, check_transition, initial_status, is_terminal, is_within_due_window,
)


class TransitionTableTests(SimpleTestCase):

    def test_every_status_has_an_entry(self):
        self.assertEqual(set(ALLOWED_TRANSITIONS), set(PDCStatus))

    def test_terminal_statuses(self):
        self.assertEqual(
            TERMINAL_STATUSES,
            {PDCStatus.CLEARED, PDCStatus.CANCELLED, PDCStatus.REPLACED, PDCStatus.WITHDRAWN}
        )
        for status in TERMINAL_STATUSES:
            self.assertTrue(is_terminal(status))
            self.assertEqual(ALLOWED_TRANSITIONS[status], frozenset())

    def test_live_statuses_hold_identity(self):
        self.assertEqual(
            NON_TERMINAL_STATUSES,
            {PDCStatus.RECEIVED, PDCStatus.DUE, PDCStatus.DEPOSITED, PDCStatus.BOUNCED}
        )

    def test_no_self_transitions(self):
        for status, targets in ALLOWED_TRANSITIONS.items():
            self.assertNotIn(status, targets)

    def test_allowed_edges(self):
        self.assertTrue(can_transition(PDCStatus.RECEIVED, PDCStatus.DUE))
        self.assertTrue(can_transition(PDCStatus.RECEIVED, PDCStatus.CANCELLED))
        self.assertTrue(can_transition(PDCStatus.RECEIVED, PDCStatus.WITHDRAWN))
        self.assertTrue(can_transition(PDCStatus.DUE, PDCStatus.DEPOSITED))
        self.assertTrue(can_transition(PDCStatus.DUE, PDCStatus.WITHDRAWN))
        self.assertTrue(can_transition(PDCStatus.DEPOSITED, PDCStatus.CLEARED))
        self.assertTrue(can_transition(PDCStatus.DEPOSITED, PDCStatus.BOUNCED))
        self.assertTrue(can_transition(PDCStatus.BOUNCED, PDCStatus.REPLACED))

    def test_rejected_edges(self):
        self.assertFalse(can_transition(PDCStatus.DUE, PDCStatus.BOUNCED))
        self.assertFalse(can_transition(PDCStatus.DUE, PDCStatus.CANCELLED))
        self.assertFalse(can_transition(PDCStatus.RECEIVED, PDCStatus.DEPOSITED))
        self.assertFalse(can_transition(PDCStatus.DEPOSITED, PDCStatus.WITHDRAWN))
        self.assertFalse(can_transition(PDCStatus.BOUNCED, PDCStatus.DEPOSITED))

    def test_plain_strings_are_accepted(self):
        self.assertTrue(can_transition('DEPOSITED', 'BOUNCED'))
        self.assertFalse(can_transition('CLEARED', 'BOUNCED'))

    def test_check_transition_reports_both_ends(self):
        with self.assertRaises(IllegalTransition) as ctx:
            check_transition(PDCStatus.DUE, PDCStatus.BOUNCED)
        self.assertEqual(ctx.exception.from_status, PDCStatus.DUE)
        self.assertEqual(ctx.exception.attempted_to, PDCStatus.BOUNCED)
        self.assertEqual(ctx.exception.as_dict()['from'], 'DUE')
        self.assertEqual(ctx.exception.as_dict()['attempted_to'], 'BOUNCED')


class DueWindowTests(SimpleTestCase):

    def setUp(self):
        self.today = date(2026, 3, 1)

    def test_window_boundary_is_inclusive(self):
        self.assertTrue(is_within_due_window(self.today + timedelta(days=7), self.today, 7))
        self.assertFalse(is_within_due_window(self.today + timedelta(days=8), self.today, 7))

    def test_past_dates_are_within_window(self):
        self.assertTrue(is_within_due_window(self.today - timedelta(days=3), self.today, 7))

    def test_initial_status(self):
        self.assertEqual(initial_status(self.today + timedelta(days=10), self.today, 7), PDCStatus.RECEIVED)
        self.assertEqual(initial_status(self.today + timedelta(days=5), self.today, 7), PDCStatus.DUE)
        self.assertEqual(initial_status(self.today + timedelta(days=5), self.today, 0), PDCStatus.RECEIVED)
