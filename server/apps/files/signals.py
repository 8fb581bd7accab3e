"""Signal handlers for files app."""

import logging

from django.core.files.storage import default_storage
from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.files.exceptions import UnavailableError
from server.apps.files.infrastructure.records import run_after_commit
from server.apps.files.models import File

logger = logging.getLogger(__name__)


def _delete_blob(blob_ref: str) -> None:
    """Best-effort blob deletion.

    Args:
        blob_ref: Storage key of the blob.
    """
    try:
        default_storage.delete(blob_ref)
    except UnavailableError:
        # Log error but don't raise - DB delete already succeeded
        # Orphaned blob can be cleaned up by background job
        logger.exception(
            'Failed to delete blob from storage (orphaned): %s',
            blob_ref,
        )


@receiver(post_delete, sender=File)
def delete_blob_from_storage(
    sender: type[File],
    instance: File,
    **kwargs: object,
) -> None:
    """Delete the blob once a File record deletion is committed.

    Covers every deletion path: single removal, recursive folder
    deletes, user cascades and the admin. A rolled back transaction
    keeps both record and blob.

    Args:
        sender: The File model class.
        instance: The File instance being deleted.
        **kwargs: Additional signal arguments.
    """
    if not instance.blob:
        return

    blob_ref = instance.blob.name
    run_after_commit(
        lambda: _delete_blob(blob_ref),
        description=f'delete blob {blob_ref}',
    )
