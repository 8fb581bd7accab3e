"""Upload policy: per-file size cap, per-batch count cap, MIME allow-list.

The policy is plain data handed to the file registry; only
``UploadPolicy.from_settings`` looks at Django settings.
"""

import logging
from dataclasses import dataclass
from typing import Final, Self

from django.conf import settings

from server.apps.files.exceptions import ValidationError
from server.apps.files.infrastructure.metadata import format_file_size

logger = logging.getLogger(__name__)

_DEFAULT_MAX_FILE_SIZE: Final = 10 * 1024 * 1024
_DEFAULT_MAX_FILE_COUNT: Final = 5


@dataclass(frozen=True)
class UploadPolicy:
    """Limits applied to an upload batch.

    An empty ``allowed_mime_types`` allows every type.
    """

    max_file_size: int = _DEFAULT_MAX_FILE_SIZE
    max_file_count: int = _DEFAULT_MAX_FILE_COUNT
    allowed_mime_types: frozenset[str] = frozenset()

    @classmethod
    def from_settings(cls) -> Self:
        """Build the policy from FILES_* settings.

        Returns:
            UploadPolicy with configured limits.
        """
        return cls(
            max_file_size=getattr(
                settings,
                'FILES_MAX_UPLOAD_SIZE',
                _DEFAULT_MAX_FILE_SIZE,
            ),
            max_file_count=getattr(
                settings,
                'FILES_MAX_UPLOAD_COUNT',
                _DEFAULT_MAX_FILE_COUNT,
            ),
            allowed_mime_types=frozenset(
                mime_type.strip().lower()
                for mime_type in getattr(settings, 'FILES_ALLOWED_MIME_TYPES', ())
                if mime_type.strip()
            ),
        )

    def check_count(self, count: int) -> None:
        """Validate the number of files in a batch.

        Args:
            count: Files in the batch.

        Raises:
            ValidationError: If the batch is empty or too large.
        """
        if count == 0:
            raise ValidationError('No files uploaded', code='empty')
        if count > self.max_file_count:
            logger.warning(
                'Upload batch rejected: %d files, limit %d',
                count,
                self.max_file_count,
            )
            raise ValidationError(
                f'Too many files. Maximum is {self.max_file_count} '
                'files per upload.',
                code='too_many_files',
            )

    def check_file(self, size_bytes: int, mime_type: str) -> None:
        """Validate one file of a batch.

        Args:
            size_bytes: File size.
            mime_type: Detected MIME type.

        Raises:
            ValidationError: If the file is too large or of a
                disallowed type.
        """
        if size_bytes > self.max_file_size:
            raise ValidationError(
                'File too large. Maximum size is '
                f'{format_file_size(self.max_file_size)} per file.',
                code='too_large',
            )
        if self.allowed_mime_types and mime_type not in self.allowed_mime_types:
            raise ValidationError(
                f'File type not allowed: {mime_type}',
                code='unsupported_type',
            )
