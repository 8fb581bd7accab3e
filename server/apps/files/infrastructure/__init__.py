"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Record store adapter (transactions, error translation)
- Blob storage backend (S3/MinIO)
- Metadata helpers (name validation, MIME type, size formatting)

Keep infrastructure concerns separate from business logic.
"""
