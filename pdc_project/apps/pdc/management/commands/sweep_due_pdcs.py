"""
Management command to promote PDCs entering the due window.
Should be run daily via cron job or task scheduler.

Usage:
    python manage.py sweep_due_pdcs
    python manage.py sweep_due_pdcs --date 2026-03-01 --dry-run

Behavior:
- Moves every RECEIVED cheque dated within DUE_WINDOW_DAYS to DUE
- Cheques whose date already passed are promoted too (missed runs catch up)
- Safe to run more than once a day; nothing is written twice
- A cheque that fails is reported and the sweep continues
"""
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from apps.core.utils import parse_date
from apps.pdc.conf import pdc_setting
from apps.pdc.engine import sweep_due_window
from apps.pdc.models import PDC


class Command(BaseCommand):
    help = 'Promote RECEIVED post-dated cheques that have entered the due window to DUE.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help='Run as of this date (YYYY-MM-DD). Defaults to today.',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be promoted without changing anything.',
        )

    def handle(self, *args, **options):
        try:
            today = parse_date(options.get('date'), 'date')
        except ValidationError:
            raise CommandError(f"Invalid --date '{options['date']}', expected YYYY-MM-DD.")
        dry_run = options.get('dry_run', False)

        result = sweep_due_window(today=today, dry_run=dry_run)
        window = pdc_setting('DUE_WINDOW_DAYS')
        self.stdout.write(self.style.NOTICE(
            f"Checking PDCs for {result['date']} (due window {window} days)..."
        ))

        if not result['checked']:
            self.stdout.write(self.style.SUCCESS('No cheques entering the due window.'))
            return

        numbers = dict(PDC.objects.filter(
            pk__in=result['promoted'] + result['skipped'] + list(result['failed'])
        ).values_list('pk', 'pdc_number'))

        for pk in result['promoted']:
            if dry_run:
                self.stdout.write(self.style.WARNING(f'  [DRY RUN] Would promote {numbers.get(pk, pk)} to DUE.'))
            else:
                self.stdout.write(self.style.SUCCESS(f'  PROMOTED: {numbers.get(pk, pk)}'))
        for pk in result['skipped']:
            self.stdout.write(self.style.WARNING(f'  SKIPPED: {numbers.get(pk, pk)} changed since it was selected.'))
        for pk, message in result['failed'].items():
            self.stdout.write(self.style.ERROR(f'  FAILED: {numbers.get(pk, pk)}: {message}'))

        # Summary
        self.stdout.write('\n' + '=' * 50)
        self.stdout.write(self.style.NOTICE('SUMMARY:'))
        self.stdout.write(f"  Checked: {result['checked']}")
        self.stdout.write(self.style.SUCCESS(f"  Promoted: {len(result['promoted'])}"))
        self.stdout.write(self.style.WARNING(f"  Skipped: {len(result['skipped'])}"))
        self.stdout.write(self.style.ERROR(f"  Failed: {len(result['failed'])}"))

        if result['failed']:
            self.stdout.write(self.style.ERROR('\nSome cheques could not be promoted. Please check the logs.'))
