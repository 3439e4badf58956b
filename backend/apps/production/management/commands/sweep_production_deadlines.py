"""
Management command to expire overdue consultations and price adjustments.
Schedule it periodically (e.g. every 5 minutes from cron).

Usage:
    python manage.py sweep_production_deadlines --dry-run  # Preview
    python manage.py sweep_production_deadlines            # Execute
"""
from django.core.management.base import BaseCommand
from django.utils import timezone
from apps.production.services.deadline_sweeper import DeadlineSweeper


class Command(BaseCommand):
    help = 'Expire overdue consultations and unanswered price adjustments'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Preview what would expire without changing anything',
        )

    def handle(self, *args, **options):
        now = timezone.now()

        if options['dry_run']:
            consultations = DeadlineSweeper.overdue_consultations(now)
            adjustments = DeadlineSweeper.overdue_adjustments(now)
            self.stdout.write(
                self.style.WARNING(
                    f'DRY RUN: Would expire {consultations.count()} consultations '
                    f'and {adjustments.count()} price adjustments'
                )
            )
            for consultation in consultations[:10]:
                self.stdout.write(f'  - consultation {consultation.id} (timed out {consultation.timeout_at})')
            for adjustment in adjustments[:10]:
                self.stdout.write(f'  - price adjustment {adjustment.id} (deadline {adjustment.response_deadline})')
            return

        result = DeadlineSweeper.run(now=now)

        for record_id in result['failed']:
            self.stdout.write(self.style.ERROR(f'Failed to expire {record_id}'))

        self.stdout.write(
            self.style.SUCCESS(
                f"Expired {result['expired_consultations']} consultations and "
                f"{result['expired_adjustments']} price adjustments"
            )
        )
