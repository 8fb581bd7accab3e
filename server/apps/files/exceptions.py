"""Exceptions for files app.

Every failure an engine operation can report is one of the kinds in
:class:`ErrorKind`. The API layer maps ``error.kind`` onto its transport
(HTTP status code, CLI exit code) without inspecting messages.
"""

from enum import StrEnum, unique


@unique
class ErrorKind(StrEnum):
    """Failure kinds reported by folder, file and share operations."""

    NOT_FOUND = 'not_found'
    FORBIDDEN = 'forbidden'
    DUPLICATE_NAME = 'duplicate_name'
    SELF_PARENT = 'self_parent'
    CIRCULAR_REFERENCE = 'circular_reference'
    NOT_EMPTY = 'not_empty'
    EXPIRED = 'expired'
    VALIDATION_ERROR = 'validation_error'
    UNAVAILABLE = 'unavailable'
    PARTIAL_FAILURE = 'partial_failure'


class FolderShareError(Exception):
    """Base class for all engine errors."""

    kind: ErrorKind
    retryable = False


class NotFoundError(FolderShareError):
    """Raised when the referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: object) -> None:
        """Initialize NotFoundError.

        Args:
            entity: Human readable entity name (e.g. 'Folder').
            entity_id: Identifier that was looked up.
        """
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'{entity} not found: {entity_id}')


class ForbiddenError(FolderShareError):
    """Raised when the principal does not own the entity."""

    kind = ErrorKind.FORBIDDEN

    def __init__(self, entity: str, entity_id: object) -> None:
        """Initialize ForbiddenError.

        Args:
            entity: Human readable entity name.
            entity_id: Identifier of the protected entity.
        """
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'Access denied to {entity}: {entity_id}')


class DuplicateNameError(FolderShareError):
    """Raised when a sibling with the same name already exists."""

    kind = ErrorKind.DUPLICATE_NAME

    def __init__(self, name: str, parent_id: int | None) -> None:
        """Initialize DuplicateNameError.

        Args:
            name: Colliding name.
            parent_id: Containing folder, None for the owner's root.
        """
        self.name = name
        self.parent_id = parent_id
        location = 'root' if parent_id is None else f'folder {parent_id}'
        super().__init__(
            f'An item named {name!r} already exists in {location}',
        )


class SelfParentError(FolderShareError):
    """Raised when a folder is moved into itself."""

    kind = ErrorKind.SELF_PARENT

    def __init__(self, folder_id: int) -> None:
        """Initialize SelfParentError.

        Args:
            folder_id: Folder that was asked to become its own parent.
        """
        self.folder_id = folder_id
        super().__init__(f'Folder {folder_id} cannot be its own parent')


class CircularReferenceError(FolderShareError):
    """Raised when a move would place a folder under its own descendant."""

    kind = ErrorKind.CIRCULAR_REFERENCE

    def __init__(self, folder_id: int, parent_id: int) -> None:
        """Initialize CircularReferenceError.

        Args:
            folder_id: Folder being moved.
            parent_id: Requested new parent (a descendant of folder_id).
        """
        self.folder_id = folder_id
        self.parent_id = parent_id
        super().__init__(
            f'Cannot move folder {folder_id} under {parent_id}: '
            'this would create a circular reference',
        )


class NotEmptyError(FolderShareError):
    """Raised by a non-recursive delete of a folder with content."""

    kind = ErrorKind.NOT_EMPTY

    def __init__(
        self,
        folder_id: int,
        child_count: int,
        file_count: int,
    ) -> None:
        """Initialize NotEmptyError.

        Args:
            folder_id: Folder that was not deleted.
            child_count: Number of direct subfolders.
            file_count: Number of direct files.
        """
        self.folder_id = folder_id
        self.child_count = child_count
        self.file_count = file_count
        super().__init__(
            f'Folder {folder_id} is not empty '
            f'({child_count} subfolders, {file_count} files); '
            'delete recursively to remove its contents',
        )


class ExpiredError(FolderShareError):
    """Raised when a share link is used at or after its expiry."""

    kind = ErrorKind.EXPIRED

    def __init__(self, expires_at: object) -> None:
        """Initialize ExpiredError.

        Args:
            expires_at: Expiry timestamp of the link.
        """
        self.expires_at = expires_at
        super().__init__(f'Share link expired at {expires_at}')


class ValidationError(FolderShareError):
    """Raised when input fails validation (names, upload policy)."""

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, *, code: str = 'invalid') -> None:
        """Initialize ValidationError.

        Args:
            message: Human readable description.
            code: Machine readable reason (e.g. 'too_large').
        """
        self.code = code
        super().__init__(message)


class UnavailableError(FolderShareError):
    """Raised when the record store or blob service timed out or failed."""

    kind = ErrorKind.UNAVAILABLE
    retryable = True

    def __init__(self, service: str, detail: str = '') -> None:
        """Initialize UnavailableError.

        Args:
            service: Which collaborator failed ('record store', 'blob store').
            detail: Optional underlying error text.
        """
        self.service = service
        message = f'{service} unavailable'
        if detail:
            message = f'{message}: {detail}'
        super().__init__(message)
