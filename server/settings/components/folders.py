"""Folder, upload and share link settings."""

from typing import Final

from decouple import Csv

from server.settings.components import config

# Upload policy (per file size cap and per batch count cap)
FILES_MAX_UPLOAD_SIZE = config(
    'FILES_MAX_UPLOAD_SIZE',
    cast=int,
    default=10 * 1024 * 1024,
)
FILES_MAX_UPLOAD_COUNT = config('FILES_MAX_UPLOAD_COUNT', cast=int, default=5)

_DEFAULT_ALLOWED_MIME_TYPES: Final = ','.join((
    'image/jpeg',
    'image/png',
    'image/gif',
    'image/webp',
    'application/pdf',
    'text/plain',
    'text/csv',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/zip',
    'application/x-zip-compressed',
))

FILES_ALLOWED_MIME_TYPES = config(
    'FILES_ALLOWED_MIME_TYPES',
    cast=Csv(),
    default=_DEFAULT_ALLOWED_MIME_TYPES,
)

# Share links
SHARE_DEFAULT_DURATION = config('SHARE_DEFAULT_DURATION', default='7d')
SHARE_PUBLIC_BASE_URL = config(
    'SHARE_PUBLIC_BASE_URL',
    default='http://localhost:3000',
)
# Lifetime of signed blob URLs handed out through public links
SHARE_URL_TTL_SECONDS = config('SHARE_URL_TTL_SECONDS', cast=int, default=3600)
