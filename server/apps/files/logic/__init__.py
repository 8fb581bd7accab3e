"""Business logic layer for files app.

This package contains all business logic for folders and files:
- Ownership checks shared by every write path
- Folder tree: create, rename, move, list, delete (recursively)
- File registry: attach uploads, rename, move, remove, list

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).

Reference: https://github.com/dry-python
for decoupling business logic from Django views.
"""

from typing import Final, final


@final
class _Unset:
    """Marker for 'argument not given' where None is meaningful."""

    def __repr__(self) -> str:
        return 'UNSET'


# ``parent_id=None`` means "move to root"; UNSET means "leave as is"
UNSET: Final = _Unset()
