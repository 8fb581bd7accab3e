"""Business logic for file operations."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Self

from django.core.files.storage import default_storage
from django.core.files.uploadedfile import UploadedFile
from django.db import IntegrityError
from django.db.models import QuerySet, Sum

from server.apps.files.exceptions import (
    DuplicateNameError,
    ErrorKind,
    FolderShareError,
    NotFoundError,
)
from server.apps.files.infrastructure.metadata import (
    clean_name,
    detect_mime_type,
)
from server.apps.files.infrastructure.records import atomic
from server.apps.files.logic import UNSET
from server.apps.files.logic.ownership import authorize
from server.apps.files.logic.upload_policy import UploadPolicy
from server.apps.files.models import File, Folder

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import BlobStorage

logger = logging.getLogger(__name__)

_SORT_FIELDS: Final = {
    'name': 'name',
    'size': 'size_bytes',
    'size_bytes': 'size_bytes',
    'created_at': 'created_at',
    'updated_at': 'updated_at',
}
_DEFAULT_SORT: Final = 'created_at'


def _get_storage() -> 'BlobStorage':
    """Get the configured default storage backend.

    Returns:
        BlobStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


@dataclass(frozen=True)
class Upload:
    """One file of an upload batch."""

    name: str
    content: bytes
    mime_type: str | None = None

    @property
    def size_bytes(self) -> int:
        """Size of the content in bytes."""
        return len(self.content)

    @classmethod
    def from_uploaded_file(cls, uploaded: UploadedFile) -> Self:
        """Wrap a Django uploaded file.

        Args:
            uploaded: File from ``request.FILES``.

        Returns:
            Upload with the file's name, bytes and declared type.
        """
        return cls(
            name=uploaded.name or '',
            content=uploaded.read(),
            mime_type=uploaded.content_type,
        )


@dataclass(frozen=True)
class UploadFailure:
    """A file of a batch that was not attached, and why."""

    name: str
    error: FolderShareError

    @property
    def kind(self) -> ErrorKind:
        """Failure kind of the underlying error."""
        return self.error.kind

    @property
    def reason(self) -> str:
        """Human readable failure reason."""
        return str(self.error)


@dataclass
class UploadBatchResult:
    """Outcome of a batch upload: what was attached and what failed."""

    files: list[File] = field(default_factory=list)
    failures: list[UploadFailure] = field(default_factory=list)

    @property
    def uploaded_count(self) -> int:
        """Number of files attached."""
        return len(self.files)

    @property
    def failed_count(self) -> int:
        """Number of files rejected or failed."""
        return len(self.failures)

    @property
    def total_size(self) -> int:
        """Total bytes attached."""
        return sum(file_instance.size_bytes for file_instance in self.files)

    @property
    def kind(self) -> ErrorKind | None:
        """PARTIAL_FAILURE if any file failed, None on full success."""
        if self.failures:
            return ErrorKind.PARTIAL_FAILURE
        return None


@dataclass(frozen=True)
class FolderUsage:
    """Direct file count and size of a folder."""

    folder: Folder
    file_count: int
    total_size: int


def _ensure_unique_name(
    owner_id: int,
    folder_id: int | None,
    name: str,
    exclude_id: int | None = None,
) -> None:
    """Fail if a sibling file already uses the name.

    Args:
        owner_id: Owner of the sibling scope.
        folder_id: Containing folder, None for unfiled.
        name: Candidate name (already trimmed).
        exclude_id: File to ignore (the file being renamed).

    Raises:
        DuplicateNameError: If the name is taken.
    """
    siblings = File.objects.filter(
        owner_id=owner_id,
        folder_id=folder_id,
        name=name,
    )
    if exclude_id is not None:
        siblings = siblings.exclude(pk=exclude_id)
    if siblings.exists():
        raise DuplicateNameError(name, folder_id)


def attach_files(
    principal_id: int,
    uploads: Sequence[Upload],
    folder_id: int | None = None,
    *,
    policy: UploadPolicy | None = None,
) -> UploadBatchResult:
    """Upload a batch of files and attach them to a folder.

    Two-phase per file: the blob is stored first, then the record is
    committed. If the commit fails the blob is deleted again, so no
    record ever points at a missing blob and failed files leave no
    orphans behind (except when that rollback itself fails).

    Args:
        principal_id: Authenticated user id (becomes the owner).
        uploads: Files to attach.
        folder_id: Target folder, None for unfiled.
        policy: Upload limits; defaults to the configured policy.

    Returns:
        UploadBatchResult with attached files and per-file failures.

    Raises:
        ValidationError: If the batch is empty or exceeds the count cap.
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    upload_policy = policy or UploadPolicy.from_settings()
    upload_policy.check_count(len(uploads))

    if folder_id is not None:
        authorize(principal_id, Folder, folder_id)

    result = UploadBatchResult()
    for upload in uploads:
        try:
            file_instance = _attach_one(
                principal_id,
                upload,
                folder_id,
                upload_policy,
            )
        except FolderShareError as error:
            logger.warning(
                'Upload of %r failed for user %d: %s',
                upload.name,
                principal_id,
                error,
            )
            result.failures.append(UploadFailure(name=upload.name, error=error))
            continue
        result.files.append(file_instance)

    logger.info(
        'Upload batch for user %d into folder %s: %d attached, %d failed',
        principal_id,
        folder_id,
        result.uploaded_count,
        result.failed_count,
    )
    return result


def attach_file(
    principal_id: int,
    upload: Upload,
    folder_id: int | None = None,
    *,
    policy: UploadPolicy | None = None,
) -> File:
    """Upload a single file.

    Args:
        principal_id: Authenticated user id.
        upload: File to attach.
        folder_id: Target folder, None for unfiled.
        policy: Upload limits; defaults to the configured policy.

    Returns:
        Created File instance.

    Raises:
        FolderShareError: The error that prevented the attach.
    """
    result = attach_files(principal_id, [upload], folder_id, policy=policy)
    if result.failures:
        raise result.failures[0].error
    return result.files[0]


def _attach_one(
    principal_id: int,
    upload: Upload,
    folder_id: int | None,
    policy: UploadPolicy,
) -> File:
    """Validate, store and record one upload.

    Args:
        principal_id: Owner.
        upload: File to attach.
        folder_id: Target folder, None for unfiled.
        policy: Upload limits.

    Returns:
        Created File instance.
    """
    name = clean_name(upload.name, entity='File')
    mime_type = detect_mime_type(name, upload.mime_type)
    policy.check_file(upload.size_bytes, mime_type)

    with atomic():
        _ensure_unique_name(principal_id, folder_id, name)

    storage = _get_storage()

    # Step 1: Upload to storage first
    blob_ref = storage.put(principal_id, upload.content, mime_type)

    # Step 2: Create database record (in transaction)
    try:
        with atomic():
            if folder_id is not None:
                # Folder may have been deleted while the blob uploaded
                authorize(principal_id, Folder, folder_id, for_update=True)
            _ensure_unique_name(principal_id, folder_id, name)
            try:
                with atomic():
                    file_instance = File.objects.create(
                        name=name,
                        mime_type=mime_type,
                        size_bytes=upload.size_bytes,
                        blob=blob_ref,
                        folder_id=folder_id,
                        owner_id=principal_id,
                    )
            except IntegrityError as error:
                raise DuplicateNameError(name, folder_id) from error
    except FolderShareError:
        # Rollback: Delete blob from storage since the record was not created
        logger.exception(
            'Database commit failed, rolling back storage upload: %s',
            blob_ref,
        )
        storage.rollback_upload(blob_ref)
        raise

    logger.info(
        'File record created: %s (ID: %d, blob: %s)',
        name,
        file_instance.pk,
        blob_ref,
    )
    return file_instance


def update_file(
    principal_id: int,
    file_id: int,
    *,
    name: str | None = None,
    folder_id: int | None | object = UNSET,
) -> File:
    """Rename and/or move a file.

    Args:
        principal_id: Authenticated user id.
        file_id: File to change.
        name: New name, None keeps the current one.
        folder_id: Target folder, None for unfiled, UNSET keeps it.

    Returns:
        Updated File instance.

    Raises:
        ValidationError: If the new name is empty or too long.
        NotFoundError: If the file or target folder does not exist.
        ForbiddenError: If either belongs to someone else.
        DuplicateNameError: If the target scope already has the name.
    """
    new_name = None if name is None else clean_name(name, entity='File')

    with atomic():
        file_instance = authorize(principal_id, File, file_id, for_update=True)
        target_folder_id = file_instance.folder_id
        if folder_id is not UNSET:
            target_folder_id = folder_id  # type: ignore[assignment]
        if target_folder_id is not None and target_folder_id != file_instance.folder_id:
            authorize(principal_id, Folder, target_folder_id, for_update=True)

        target_name = new_name or file_instance.name
        if (
            target_name == file_instance.name
            and target_folder_id == file_instance.folder_id
        ):
            return file_instance

        _ensure_unique_name(
            principal_id,
            target_folder_id,
            target_name,
            exclude_id=file_instance.pk,
        )

        file_instance.name = target_name
        file_instance.folder_id = target_folder_id
        try:
            with atomic():
                file_instance.save(update_fields=['name', 'folder', 'updated_at'])
        except IntegrityError as error:
            raise DuplicateNameError(target_name, target_folder_id) from error

    logger.info(
        'File updated: ID=%d, name=%s, folder=%s',
        file_instance.pk,
        target_name,
        target_folder_id,
    )
    return file_instance


def remove_file(principal_id: int, file_id: int) -> bool:
    """Delete a file record, then its blob.

    The record goes first: it decides whether the file still exists.
    Blob deletion runs after commit (post_delete signal) and a failure
    there is only logged. Removing an id that is already gone is a
    successful no-op.

    Args:
        principal_id: Authenticated user id.
        file_id: File to remove.

    Returns:
        True if a record was deleted, False if it was already gone.

    Raises:
        ForbiddenError: If the file belongs to someone else.
    """
    with atomic():
        try:
            file_instance = authorize(principal_id, File, file_id, for_update=True)
        except NotFoundError:
            logger.info('File already deleted: ID=%d', file_id)
            return False
        file_instance.delete()

    logger.info('File record deleted from database: ID=%d', file_id)
    return True


def get_file(principal_id: int, file_id: int) -> File:
    """Get a file owned by the principal.

    Args:
        principal_id: Authenticated user id.
        file_id: File to load.

    Returns:
        File instance.

    Raises:
        NotFoundError: If the file does not exist.
        ForbiddenError: If the file belongs to someone else.
    """
    return authorize(principal_id, File, file_id)


def file_access_url(
    principal_id: int,
    file_id: int,
    *,
    expire: int | None = None,
) -> str:
    """Get a time-limited download URL for the owner.

    Args:
        principal_id: Authenticated user id.
        file_id: File to download.
        expire: URL lifetime in seconds.

    Returns:
        Signed URL with an attachment disposition.
    """
    file_instance = authorize(principal_id, File, file_id)
    return _get_storage().access_url(
        file_instance.blob.name,
        expire=expire,
        download_name=file_instance.name,
    )


def list_files(  # noqa: WPS211
    principal_id: int,
    *,
    folder_id: int | None | object = UNSET,
    search: str | None = None,
    mime_type: str | None = None,
    sort_by: str = _DEFAULT_SORT,
    descending: bool = True,
) -> QuerySet[File]:
    """List the principal's files.

    Args:
        principal_id: Authenticated user id.
        folder_id: Restrict to one folder, None for unfiled files,
            UNSET for all files.
        search: Case-insensitive substring of the file name.
        mime_type: Case-insensitive substring of the MIME type.
        sort_by: One of name, size, created_at, updated_at; anything
            else falls back to created_at.
        descending: Sort direction.

    Returns:
        QuerySet of File objects.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    files = File.objects.filter(owner_id=principal_id)

    if folder_id is not UNSET:
        if folder_id is not None:
            authorize(principal_id, Folder, folder_id)  # type: ignore[arg-type]
        files = files.filter(folder_id=folder_id)
    if search:
        files = files.filter(name__icontains=search)
    if mime_type:
        files = files.filter(mime_type__icontains=mime_type)

    order_field = _SORT_FIELDS.get(sort_by, _DEFAULT_SORT)
    prefix = '-' if descending else ''
    logger.debug(
        'Listing files for user %d (folder: %s, order: %s%s)',
        principal_id,
        folder_id,
        prefix,
        order_field,
    )
    return files.select_related('folder').order_by(f'{prefix}{order_field}', 'pk')


def folder_usage(principal_id: int, folder_id: int) -> FolderUsage:
    """Count a folder's direct files and their total size.

    Args:
        principal_id: Authenticated user id.
        folder_id: Folder to measure.

    Returns:
        FolderUsage instance.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    folder = authorize(principal_id, Folder, folder_id)
    files = File.objects.filter(folder_id=folder.pk)
    return FolderUsage(
        folder=folder,
        file_count=files.count(),
        total_size=files.aggregate(total=Sum('size_bytes'))['total'] or 0,
    )
