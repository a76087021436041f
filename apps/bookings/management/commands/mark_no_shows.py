"""
management command: mark_no_shows

Moves CONFIRMED bookings whose time has passed to NO_SHOW. Time slots
count as elapsed once their start time is behind us; queue tickets once
their day is over.

Run via OS cron every 15 minutes:
  */15 * * * *  /path/to/venv/bin/python manage.py mark_no_shows
"""
import logging

from django.core.management.base import BaseCommand

from apps.bookings.lifecycle import mark_elapsed_no_shows

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark elapsed CONFIRMED bookings as NO_SHOW'

    def add_arguments(self, parser):
        parser.add_argument(
            '--changed-by', default='system_cron',
            help='Actor recorded in the status log (default: system_cron)',
        )

    def handle(self, *args, **options):
        count = mark_elapsed_no_shows(changed_by=options['changed_by'])
        logger.info('mark_no_shows: %d bookings marked NO_SHOW', count)
        self.stdout.write(self.style.SUCCESS(f'mark_no_shows: marked {count} bookings as no-show'))
