"""Blob storage backend for S3-compatible storage."""

import logging
import uuid
from typing import Any, final, override

from botocore.exceptions import BotoCoreError, ClientError
from django.core.files.base import ContentFile
from storages.backends.s3 import S3Storage

from server.apps.files.exceptions import UnavailableError

logger = logging.getLogger(__name__)

_SERVICE_NAME = 'blob store'


@final
class BlobStorage(S3Storage):
    """S3 storage backend holding file blobs.

    Extends django-storages S3Storage with:
    - put/access_url/rollback_upload operations keyed by opaque blob refs
    - translation of connection and timeout failures to UnavailableError
    - enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save blob to S3 with error handling and logging.

        Args:
            name: Storage key for the blob.
            content: Blob content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Actual storage key used (may differ from name if conflicts).

        Raises:
            UnavailableError: If S3 cannot be reached or times out.
        """
        try:
            logger.info('Uploading blob to storage: %s', name)
            saved_name = super().save(name, content, max_length)
        except (BotoCoreError, ClientError) as error:
            logger.exception('Failed to upload blob to storage: %s', name)
            raise UnavailableError(_SERVICE_NAME, str(error)) from error
        logger.info('Successfully uploaded blob: %s', saved_name)
        return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete blob from S3 with error handling and logging.

        Deleting a key that no longer exists succeeds silently in S3,
        which keeps retried deletes safe.

        Args:
            name: Storage key of blob to delete.

        Raises:
            UnavailableError: If S3 cannot be reached or times out.
        """
        try:
            logger.info('Deleting blob from storage: %s', name)
            super().delete(name)
        except (BotoCoreError, ClientError) as error:
            logger.exception('Failed to delete blob from storage: %s', name)
            raise UnavailableError(_SERVICE_NAME, str(error)) from error
        logger.info('Successfully deleted blob: %s', name)

    def put(
        self,
        owner_id: int,
        content: bytes,
        content_type: str,
    ) -> str:
        """Store bytes under a fresh opaque key.

        Args:
            owner_id: Owner of the blob, used as key prefix.
            content: Raw bytes to store.
            content_type: MIME type stored as object metadata.

        Returns:
            Blob reference (storage key).
        """
        blob = ContentFile(content)
        blob.content_type = content_type  # type: ignore[attr-defined]
        return self.save(f'{owner_id}/{uuid.uuid4().hex}', blob)

    def access_url(
        self,
        name: str,
        expire: int | None = None,
        download_name: str | None = None,
    ) -> str:
        """Build a time-limited URL for reading a blob.

        Args:
            name: Storage key of the blob.
            expire: URL lifetime in seconds (storage default when None).
            download_name: If set, ask clients to save under this name.

        Returns:
            Signed URL; never exposes storage credentials.
        """
        parameters = None
        if download_name:
            parameters = {
                'ResponseContentDisposition': (
                    f'attachment; filename="{download_name}"'
                ),
            }
        return self.url(name, parameters=parameters, expire=expire)

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded blob for DB transaction rollback.

        This method is called when a database transaction fails after
        a blob has been successfully uploaded to S3.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, as the DB rollback has already occurred.

        Args:
            name: Storage key of blob to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting blob: %s', name)
            self.delete(name)
        except UnavailableError:
            # The blob stays in storage without a record; a reconciliation
            # job can remove orphans
            logger.exception(
                'Failed to rollback upload, orphaned blob: %s',
                name,
            )
            return
        logger.info('Successfully rolled back blob upload: %s', name)
