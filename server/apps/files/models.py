"""Database models for files app."""

from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

# Constants for field max lengths
NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_BLOB_MAX_LENGTH: Final = 512


@final
class Folder(models.Model):
    """Folder in an owner's tree.

    Folders form one tree per owner: ``parent`` is NULL for root folders
    and otherwise points at a folder with the same owner. Children are
    discovered through the indexed ``parent`` column, never through an
    in-memory graph.
    """

    name = models.CharField(max_length=NAME_MAX_LENGTH)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='folders',
    )

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

        indexes: ClassVar[list[models.Index]] = [
            # Child discovery: WHERE owner = ? AND parent = ?
            models.Index(
                fields=['owner', 'parent'],
                name='folders_owner_parent_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['owner', 'parent', 'name'],
                name='folders_sibling_name_unique',
            ),
            # NULL parents compare distinct in SQL, roots need their own rule
            models.UniqueConstraint(
                fields=['owner', 'name'],
                condition=models.Q(parent__isnull=True),
                name='folders_root_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name}'


@final
class File(models.Model):
    """File metadata attached to a folder (or unfiled).

    The bytes live in the blob store under ``blob``; the record is the
    source of truth for whether the file logically exists.
    """

    name = models.CharField(max_length=NAME_MAX_LENGTH)

    mime_type = models.CharField(max_length=_MIME_TYPE_MAX_LENGTH)

    size_bytes = models.BigIntegerField(
        help_text='File size in bytes',
    )

    # Opaque blob reference in the default storage
    blob = models.FileField(
        upload_to='',
        max_length=_BLOB_MAX_LENGTH,
        help_text='Blob key: {owner_id}/{uuid}',
    )

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='files',
        null=True,
        blank=True,
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='files',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['owner', 'folder'],
                name='files_owner_folder_idx',
            ),
            models.Index(
                fields=['owner', '-created_at'],
                name='files_owner_recent_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.UniqueConstraint(
                fields=['owner', 'folder', 'name'],
                name='files_sibling_name_unique',
            ),
            models.UniqueConstraint(
                fields=['owner', 'name'],
                condition=models.Q(folder__isnull=True),
                name='files_unfiled_name_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name}'

    def get_extension(self) -> str:
        """Extract file extension.

        Example: 'report.PDF' -> 'pdf'

        Returns:
            Extension without dot (lowercase).
        """
        _, dot, extension = self.name.rpartition('.')
        return extension.lower() if dot else ''
