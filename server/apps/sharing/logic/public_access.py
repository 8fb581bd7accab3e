"""Unauthenticated, read-only access to a shared folder subtree.

Everything returned here is safe to hand to an anonymous token holder:
names, types, sizes and signed blob URLs, never storage keys or
credentials.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Final

from django.conf import settings
from django.core.files.storage import default_storage
from django.utils import timezone

from server.apps.files.exceptions import (
    CircularReferenceError,
    ForbiddenError,
    NotFoundError,
)
from server.apps.files.infrastructure.metadata import format_file_size
from server.apps.files.logic.folder_operations import (
    FolderNode,
    build_tree,
    is_within,
)
from server.apps.files.models import File
from server.apps.sharing.logic.share_operations import resolve_share_link
from server.apps.sharing.models import ShareLink

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import BlobStorage

logger = logging.getLogger(__name__)

_DEFAULT_URL_TTL: Final = 3600


@dataclass(frozen=True)
class SharedFile:
    """Download-safe view of a file."""

    id: int
    name: str
    mime_type: str
    size_bytes: int
    formatted_size: str
    url: str
    created_at: datetime


@dataclass(frozen=True)
class SharedFolder:
    """Read-only folder with its files and expanded subfolders."""

    id: int
    name: str
    created_at: datetime
    files: list[SharedFile] = field(default_factory=list)
    subfolders: list['SharedFolder'] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        """Number of direct files."""
        return len(self.files)

    @property
    def subfolder_count(self) -> int:
        """Number of direct subfolders."""
        return len(self.subfolders)

    @property
    def total_size(self) -> int:
        """Bytes of the direct files."""
        return sum(shared.size_bytes for shared in self.files)

    @property
    def formatted_total_size(self) -> str:
        """Human readable total size of the direct files."""
        return format_file_size(self.total_size)


@dataclass(frozen=True)
class SharedFolderView:
    """What a token holder sees when opening a share link."""

    folder: SharedFolder
    owner_name: str
    expires_at: datetime
    remaining: timedelta


def _url_ttl(link: ShareLink, now: datetime, url_ttl: int | None) -> int:
    """Signed URL lifetime, never outliving the link itself.

    Args:
        link: Resolved share link.
        now: Access time.
        url_ttl: Requested lifetime in seconds.

    Returns:
        Lifetime in seconds, at least 1.
    """
    ttl = url_ttl
    if ttl is None:
        ttl = getattr(settings, 'SHARE_URL_TTL_SECONDS', _DEFAULT_URL_TTL)
    remaining = int((link.expires_at - now).total_seconds())
    return max(1, min(ttl, remaining))


def _shared_file(
    file_instance: File,
    storage: 'BlobStorage',
    ttl: int,
    *,
    download: bool = False,
) -> SharedFile:
    """Convert a file record into its public view."""
    return SharedFile(
        id=file_instance.pk,
        name=file_instance.name,
        mime_type=file_instance.mime_type,
        size_bytes=file_instance.size_bytes,
        formatted_size=format_file_size(file_instance.size_bytes),
        url=storage.access_url(
            file_instance.blob.name,
            expire=ttl,
            download_name=file_instance.name if download else None,
        ),
        created_at=file_instance.created_at,
    )


def _shared_folder(
    node: FolderNode,
    storage: 'BlobStorage',
    ttl: int,
) -> SharedFolder:
    """Convert an expanded tree into public views, iteratively."""
    root = SharedFolder(
        id=node.folder.pk,
        name=node.folder.name,
        created_at=node.folder.created_at,
    )
    stack = [(node, root)]
    while stack:
        current_node, current_view = stack.pop()
        current_view.files.extend(
            _shared_file(file_instance, storage, ttl)
            for file_instance in current_node.files
        )
        for child in current_node.children:
            child_view = SharedFolder(
                id=child.folder.pk,
                name=child.folder.name,
                created_at=child.folder.created_at,
            )
            current_view.subfolders.append(child_view)
            stack.append((child, child_view))
    return root


def open_shared_folder(
    token: str,
    *,
    now: datetime | None = None,
    url_ttl: int | None = None,
) -> SharedFolderView:
    """Resolve a token and expand the shared folder read-only.

    Args:
        token: Token from the public URL.
        now: Access time, current time when None.
        url_ttl: Lifetime of the signed file URLs in seconds.

    Returns:
        SharedFolderView with the whole subtree.

    Raises:
        NotFoundError: If the token is unknown or revoked.
        ExpiredError: If the link has expired.
    """
    access_time = now or timezone.now()
    link = resolve_share_link(token, now=access_time)
    folder = link.folder

    storage: BlobStorage = default_storage  # type: ignore[assignment]
    ttl = _url_ttl(link, access_time, url_ttl)
    tree = build_tree([folder], include_files=True)[0]

    owner = folder.owner
    logger.info(
        'Shared folder opened: link=%d, folder=%d',
        link.pk,
        folder.pk,
    )
    return SharedFolderView(
        folder=_shared_folder(tree, storage, ttl),
        owner_name=owner.get_full_name() or owner.get_username(),
        expires_at=link.expires_at,
        remaining=link.expires_at - access_time,
    )


def get_shared_file(
    token: str,
    file_id: int,
    *,
    now: datetime | None = None,
    url_ttl: int | None = None,
) -> SharedFile:
    """Serve one file of a shared subtree by id.

    The file's folder chain is walked up to the root; the file is only
    served if the shared folder is on that chain.

    Args:
        token: Token from the public URL.
        file_id: Requested file.
        now: Access time, current time when None.
        url_ttl: Lifetime of the signed download URL in seconds.

    Returns:
        SharedFile whose URL downloads as an attachment.

    Raises:
        NotFoundError: If the token or the file is unknown.
        ExpiredError: If the link has expired.
        ForbiddenError: If the file lies outside the shared subtree.
    """
    access_time = now or timezone.now()
    link = resolve_share_link(token, now=access_time)

    file_instance = File.objects.filter(pk=file_id).first()
    if file_instance is None:
        raise NotFoundError('File', file_id)

    if not _in_shared_subtree(file_instance, link):
        logger.warning(
            'Shared file request outside subtree: link=%d, file=%d',
            link.pk,
            file_id,
        )
        raise ForbiddenError('File', file_id)

    storage: BlobStorage = default_storage  # type: ignore[assignment]
    return _shared_file(
        file_instance,
        storage,
        _url_ttl(link, access_time, url_ttl),
        download=True,
    )


def _in_shared_subtree(file_instance: File, link: ShareLink) -> bool:
    """Check that a file sits somewhere below the shared folder."""
    if file_instance.folder_id is None:
        return False
    try:
        return is_within(file_instance.folder_id, link.folder_id)
    except CircularReferenceError:
        return False
