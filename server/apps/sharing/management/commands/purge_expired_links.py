"""Management command to purge expired share links."""

import logging
from datetime import timedelta
from typing import Any, Final

from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.sharing.logic.share_operations import (
    purge_expired_share_links,
)
from server.apps.sharing.models import ShareLink

_DEFAULT_GRACE_DAYS: Final = 0

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Delete share links that expired more than N days ago.

    Expired links never resolve, so this is storage hygiene only.
    """

    help = 'Purge expired share links'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--grace-days',
            type=int,
            default=_DEFAULT_GRACE_DAYS,
            help=(
                'Keep links that expired within this many days '
                f'(default: {_DEFAULT_GRACE_DAYS})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the purge command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        cutoff = timezone.now() - timedelta(days=options['grace_days'])

        self.stdout.write(f'Looking for share links expired before {cutoff}')

        if options['dry_run']:
            expired = ShareLink.objects.filter(
                expires_at__lte=cutoff,
            ).select_related('folder').order_by('expires_at')
            count = 0
            for link in expired:
                self.stdout.write(
                    f'Would delete: {link.token[:8]}... '
                    f'(folder: {link.folder.name}, '
                    f'expired: {link.expires_at})',
                )
                count += 1
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} share links'),
            )
            return

        count = purge_expired_share_links(before=cutoff)
        logger.info('Purge command removed %d share links', count)
        self.stdout.write(
            self.style.SUCCESS(f'Purged {count} share links'),
        )
