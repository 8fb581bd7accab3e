"""Metadata helpers for folders and files."""

import mimetypes
from typing import Final

from server.apps.files.exceptions import ValidationError
from server.apps.files.models import NAME_MAX_LENGTH

_DEFAULT_MIME_TYPE: Final = 'application/octet-stream'
_SIZE_UNITS: Final = ('Bytes', 'KB', 'MB', 'GB', 'TB')
_KILO: Final = 1024


def clean_name(raw_name: str | None, *, entity: str = 'Folder') -> str:
    """Validate and normalize a folder or file name.

    Names are trimmed of surrounding whitespace and otherwise compared
    exactly: no case folding, no Unicode normalization.

    Args:
        raw_name: Name as supplied by the caller.
        entity: Entity label used in error messages.

    Returns:
        Trimmed name.

    Raises:
        ValidationError: If the name is empty or longer than 255
            code points after trimming.
    """
    name = (raw_name or '').strip()
    if not name:
        raise ValidationError(f'{entity} name is required', code='required')
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(
            f'{entity} name must be at most {NAME_MAX_LENGTH} characters',
            code='too_long',
        )
    return name


def detect_mime_type(filename: str, declared: str | None = None) -> str:
    """Detect MIME type for an upload.

    The type declared by the client wins; otherwise it is guessed from
    the filename extension.

    Args:
        filename: Filename with extension.
        declared: MIME type sent along with the upload, if any.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    if declared:
        return declared.strip().lower()
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return _DEFAULT_MIME_TYPE
    return mime_type


def format_file_size(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '0 Bytes', '1.5 MB').
    """
    if size_bytes <= 0:
        return '0 Bytes'
    size = float(size_bytes)
    unit_index = 0
    while size >= _KILO and unit_index < len(_SIZE_UNITS) - 1:
        size /= _KILO
        unit_index += 1
    if unit_index == 0:
        return f'{size_bytes} Bytes'
    return f'{size:.2f}'.rstrip('0').rstrip('.') + f' {_SIZE_UNITS[unit_index]}'
