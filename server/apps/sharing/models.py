"""Database models for sharing app."""

from datetime import datetime
from typing import ClassVar, Final, final, override

from django.db import models
from django.utils import timezone

from server.apps.files.models import Folder

# secrets.token_urlsafe(32) yields 43 characters
_TOKEN_MAX_LENGTH: Final = 64


@final
class ShareLink(models.Model):
    """Public, time-limited, read-only access to a folder subtree.

    A link has no owner of its own: whoever owns ``folder`` may revoke
    it. Expiry is derived by comparing ``expires_at`` with the clock at
    access time; there is no stored status.
    """

    token = models.CharField(
        max_length=_TOKEN_MAX_LENGTH,
        unique=True,
        help_text='URL-safe random token (256 bits)',
    )

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='share_links',
    )

    expires_at = models.DateTimeField(db_index=True)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        """Model metadata."""

        verbose_name = 'Share Link'  # type: ignore[mutable-override]
        verbose_name_plural = 'Share Links'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.folder_id}:{self.token[:8]}'

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check expiry; the expiry instant itself already counts as expired.

        Args:
            now: Reference time, current time when None.

        Returns:
            True if ``now >= expires_at``.
        """
        return (now or timezone.now()) >= self.expires_at
