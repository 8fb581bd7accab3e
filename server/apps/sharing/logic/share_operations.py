"""Business logic for share links.

A link moves from active to expired purely by the passage of time and
is revoked by deleting it. Nothing here mutates state on read.
"""

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum, unique
from typing import Final

from django.conf import settings
from django.utils import timezone

from server.apps.files.exceptions import ExpiredError, NotFoundError
from server.apps.files.infrastructure.records import atomic
from server.apps.files.logic.ownership import authorize
from server.apps.files.models import Folder
from server.apps.sharing.models import ShareLink

logger = logging.getLogger(__name__)

# Accepted duration grammar: {integer}{unit}, unit h (hours) or d (days).
# ASCII digits only, at most nine of them.
_DURATION_PATTERN: Final = re.compile(r'([0-9]{1,9})([hd])')
_DURATION_UNITS: Final = {'h': 'hours', 'd': 'days'}

# Fallback for malformed durations
DEFAULT_SHARE_DURATION: Final = timedelta(days=7)

# 32 random bytes -> 256 bits of entropy, 43 URL-safe characters
_TOKEN_BYTES: Final = 32


@unique
class ShareStatus(StrEnum):
    """Derived state of a share link."""

    ACTIVE = 'active'
    EXPIRED = 'expired'


@dataclass(frozen=True)
class IssuedShareLink:
    """Newly created link and its public URL."""

    link: ShareLink
    url: str

    @property
    def token(self) -> str:
        """Token of the link."""
        return self.link.token


@dataclass(frozen=True)
class ShareLinkSummary:
    """Share link as listed to its folder's owner."""

    link: ShareLink
    url: str
    status: ShareStatus
    expires_in: timedelta


def parse_duration(value: str | None) -> timedelta:
    """Parse a share duration such as '12h' or '7d'.

    Malformed, zero or out-of-range values fall back to seven days
    instead of failing the request.

    Args:
        value: Duration string.

    Returns:
        Positive duration.
    """
    match = _DURATION_PATTERN.fullmatch(value or '')
    if match is None:
        logger.warning(
            'Unrecognized share duration %r, using default %s',
            value,
            DEFAULT_SHARE_DURATION,
        )
        return DEFAULT_SHARE_DURATION

    amount, unit = match.groups()
    try:
        duration = timedelta(**{_DURATION_UNITS[unit]: int(amount)})
    except OverflowError:
        duration = timedelta(0)

    if not duration:
        logger.warning(
            'Unusable share duration %r, using default %s',
            value,
            DEFAULT_SHARE_DURATION,
        )
        return DEFAULT_SHARE_DURATION
    return duration


def generate_token() -> str:
    """Generate an unguessable URL-safe token.

    Returns:
        Token from the operating system's CSPRNG.
    """
    return secrets.token_urlsafe(_TOKEN_BYTES)


def build_share_url(token: str, base_url: str | None = None) -> str:
    """Build the public URL of a share link.

    Args:
        token: Share token.
        base_url: Public site root; SHARE_PUBLIC_BASE_URL when None.

    Returns:
        URL of the form ``{base_url}/share/{token}``.
    """
    root = base_url or getattr(settings, 'SHARE_PUBLIC_BASE_URL', '')
    return f'{root.rstrip("/")}/share/{token}'


def share_link_status(link: ShareLink, now: datetime | None = None) -> ShareStatus:
    """Derive the status of a link.

    Args:
        link: Share link.
        now: Reference time, current time when None.

    Returns:
        ACTIVE while ``now < expires_at``, EXPIRED afterwards.
    """
    if link.is_expired(now):
        return ShareStatus.EXPIRED
    return ShareStatus.ACTIVE


def _mask(token: str) -> str:
    """Shorten a token for logs and error messages."""
    return f'{token[:8]}...'


def issue_share_link(
    principal_id: int,
    folder_id: int,
    duration: str | None = None,
    *,
    base_url: str | None = None,
    now: datetime | None = None,
) -> IssuedShareLink:
    """Create a share link for a folder owned by the principal.

    Args:
        principal_id: Authenticated user id.
        folder_id: Folder to share (with its whole subtree).
        duration: '{n}h' or '{n}d'; SHARE_DEFAULT_DURATION when None.
        base_url: Public site root for the returned URL.
        now: Creation time, current time when None.

    Returns:
        IssuedShareLink with the persisted link and its URL.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    created_at = now or timezone.now()
    if duration is None:
        duration = getattr(settings, 'SHARE_DEFAULT_DURATION', '7d')

    lifetime = parse_duration(duration)
    try:
        expires_at = created_at + lifetime
    except OverflowError:
        logger.warning('Share duration %r overflows, using default', duration)
        expires_at = created_at + DEFAULT_SHARE_DURATION

    with atomic():
        folder = authorize(principal_id, Folder, folder_id)
        link = ShareLink.objects.create(
            token=generate_token(),
            folder=folder,
            expires_at=expires_at,
            created_at=created_at,
        )

    logger.info(
        'Share link created: ID=%d, folder=%d, token=%s, expires=%s',
        link.pk,
        folder_id,
        _mask(link.token),
        expires_at.isoformat(),
    )
    return IssuedShareLink(link=link, url=build_share_url(link.token, base_url))


def resolve_share_link(token: str, *, now: datetime | None = None) -> ShareLink:
    """Look up an active share link.

    Pure read: no locking, no mutation.

    Args:
        token: Token from the public URL.
        now: Access time, current time when None.

    Returns:
        ShareLink with its folder loaded.

    Raises:
        NotFoundError: If no link has this token (or it was revoked).
        ExpiredError: If the access time is at or after expiry.
    """
    link = None
    if token:
        link = ShareLink.objects.select_related(
            'folder',
        ).filter(token=token).first()
    if link is None:
        logger.info('Unknown share token: %s', _mask(token or ''))
        raise NotFoundError('ShareLink', _mask(token or ''))

    if link.is_expired(now):
        logger.info(
            'Expired share token: %s (expired %s)',
            _mask(token),
            link.expires_at.isoformat(),
        )
        raise ExpiredError(link.expires_at)
    return link


def revoke_share_link(principal_id: int, share_id: int) -> ShareLink:
    """Delete a share link owned (through its folder) by the principal.

    Revocation is final: the token never resolves again.

    Args:
        principal_id: Authenticated user id.
        share_id: Share link id.

    Returns:
        The deleted link (no longer persisted).

    Raises:
        NotFoundError: If the link does not exist.
        ForbiddenError: If the shared folder belongs to someone else.
    """
    with atomic():
        link = ShareLink.objects.select_for_update().filter(pk=share_id).first()
        if link is None:
            raise NotFoundError('ShareLink', share_id)
        authorize(principal_id, Folder, link.folder_id)
        link.delete()

    logger.info(
        'Share link revoked: ID=%d, folder=%d, token=%s',
        share_id,
        link.folder_id,
        _mask(link.token),
    )
    return link


def list_share_links(
    principal_id: int,
    *,
    base_url: str | None = None,
    now: datetime | None = None,
) -> list[ShareLinkSummary]:
    """List share links of every folder the principal owns.

    Expired links are included with status EXPIRED and a zero
    ``expires_in``.

    Args:
        principal_id: Authenticated user id.
        base_url: Public site root for the URLs.
        now: Reference time, current time when None.

    Returns:
        Summaries, newest first.
    """
    reference = now or timezone.now()
    links = ShareLink.objects.filter(
        folder__owner_id=principal_id,
    ).select_related('folder').order_by('-created_at', '-pk')

    return [
        ShareLinkSummary(
            link=link,
            url=build_share_url(link.token, base_url),
            status=share_link_status(link, reference),
            expires_in=max(link.expires_at - reference, timedelta(0)),
        )
        for link in links
    ]


def purge_expired_share_links(before: datetime | None = None) -> int:
    """Delete links that expired before a cutoff.

    Expired links are already inert; this only reclaims storage.

    Args:
        before: Cutoff; links with ``expires_at <= before`` go.

    Returns:
        Number of links deleted.
    """
    cutoff = before or timezone.now()
    deleted, _ = ShareLink.objects.filter(expires_at__lte=cutoff).delete()
    if deleted:
        logger.info('Purged %d expired share links', deleted)
    return deleted
