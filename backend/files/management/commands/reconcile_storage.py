"""
Management command to reconcile blob storage with file records.

Usage:
    python manage.py reconcile_storage
    python manage.py reconcile_storage --dry-run      # Report only
    python manage.py reconcile_storage --min-age 0    # Ignore the grace period
"""

from django.conf import settings
from django.core.management.base import BaseCommand
from files.tasks import reconcile_storage


class Command(BaseCommand):
    help = 'Reclaim orphaned blobs, report dangling file records and sweep stray files'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would be removed without deleting anything',
        )
        parser.add_argument(
            '--min-age',
            type=float,
            default=None,
            help='Only touch blobs and files older than this many seconds',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        self.stdout.write(self.style.NOTICE(
            f"Reconciling storage in {settings.MEDIA_ROOT}"
            f"{' (dry run)' if dry_run else ''}..."
        ))

        result = reconcile_storage(dry_run=dry_run, min_age=options['min_age'])

        reclaimed, swept = ('Would reclaim', 'Would sweep') if dry_run else ('Reclaimed', 'Swept')
        self.stdout.write(
            f"{reclaimed} {len(result['orphaned_blobs'])} orphaned blob(s)\n"
            f"{swept} {len(result['stray_files'])} stray file(s)"
        )
        for digest in result['dangling_records']:
            self.stdout.write(self.style.WARNING(
                f"File records reference missing blob {digest}"
            ))

        self.stdout.write(self.style.SUCCESS('Reconciliation complete'))
