"""Business logic for the folder tree.

Folders are addressed by id and children are discovered with indexed
queries on ``parent``; no operation builds an in-memory pointer graph
of the whole tree. Tree walks are iterative and remember the ids they
have visited, so any natural depth is walked and a corrupted chain can
never loop forever.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from itertools import batched
from typing import Final

from django.db import IntegrityError

from server.apps.files.exceptions import (
    CircularReferenceError,
    DuplicateNameError,
    NotEmptyError,
    NotFoundError,
    SelfParentError,
)
from server.apps.files.infrastructure.metadata import clean_name
from server.apps.files.infrastructure.records import atomic
from server.apps.files.logic import UNSET
from server.apps.files.logic.ownership import authorize
from server.apps.files.models import File, Folder

logger = logging.getLogger(__name__)

# Keep IN (...) lists below SQLite's bound variable limit
_QUERY_BATCH_SIZE: Final = 500


@dataclass
class FolderNode:
    """Folder with its expanded children (and optionally its files)."""

    folder: Folder
    children: list['FolderNode'] = field(default_factory=list)
    files: list[File] = field(default_factory=list)


@dataclass(frozen=True)
class FolderDetails:
    """Folder with direct content counts and its breadcrumb path."""

    folder: Folder
    child_count: int
    file_count: int
    path: list[Folder]


@dataclass(frozen=True)
class FolderDeletion:
    """Outcome of a folder delete."""

    folder_id: int
    recursive: bool
    deleted_folders: int = 0
    deleted_files: int = 0
    already_deleted: bool = False


def iter_ancestor_ids(folder_id: int) -> Iterator[int]:
    """Walk the parent chain upwards, starting with the folder itself.

    One indexed lookup per step. Stops after the root (or a dangling
    parent id).

    Args:
        folder_id: Folder to start from.

    Yields:
        Folder ids from ``folder_id`` up to its root.

    Raises:
        CircularReferenceError: If the stored chain revisits a folder.
    """
    visited: set[int] = set()
    current: int | None = folder_id
    while current is not None:
        if current in visited:
            logger.error(
                'Corrupted folder chain from %d at %d',
                folder_id,
                current,
            )
            raise CircularReferenceError(folder_id, current)
        visited.add(current)
        yield current
        current = Folder.objects.filter(
            pk=current,
        ).values_list('parent_id', flat=True).first()


def is_within(folder_id: int, ancestor_id: int) -> bool:
    """Check whether a folder is ``ancestor_id`` or lies beneath it.

    Args:
        folder_id: Folder whose chain is walked.
        ancestor_id: Folder searched for on that chain.

    Returns:
        True if ``ancestor_id`` is on the chain from ``folder_id`` to root.
    """
    return any(
        current == ancestor_id
        for current in iter_ancestor_ids(folder_id)
    )


def _ensure_unique_name(
    owner_id: int,
    parent_id: int | None,
    name: str,
    exclude_id: int | None = None,
) -> None:
    """Fail if a sibling folder already uses the name.

    Args:
        owner_id: Owner of the sibling scope.
        parent_id: Containing folder, None for root.
        name: Candidate name (already trimmed).
        exclude_id: Folder to ignore (the folder being renamed).

    Raises:
        DuplicateNameError: If the name is taken.
    """
    siblings = Folder.objects.filter(
        owner_id=owner_id,
        parent_id=parent_id,
        name=name,
    )
    if exclude_id is not None:
        siblings = siblings.exclude(pk=exclude_id)
    if siblings.exists():
        raise DuplicateNameError(name, parent_id)


def create_folder(
    principal_id: int,
    name: str,
    parent_id: int | None = None,
) -> Folder:
    """Create a folder at the owner's root or inside a parent folder.

    Args:
        principal_id: Authenticated user id (becomes the owner).
        name: Folder name, trimmed, 1..255 characters.
        parent_id: Parent folder, None for a root folder.

    Returns:
        Created Folder instance.

    Raises:
        ValidationError: If the name is empty or too long.
        NotFoundError: If the parent does not exist.
        ForbiddenError: If the parent belongs to someone else.
        DuplicateNameError: If a sibling already uses the name.
    """
    folder_name = clean_name(name)

    with atomic():
        if parent_id is not None:
            # Row lock: a concurrent recursive delete of the parent waits
            authorize(principal_id, Folder, parent_id, for_update=True)

        _ensure_unique_name(principal_id, parent_id, folder_name)

        try:
            with atomic():
                folder = Folder.objects.create(
                    name=folder_name,
                    owner_id=principal_id,
                    parent_id=parent_id,
                )
        except IntegrityError as error:
            # Lost a race against a concurrent create of the same name
            raise DuplicateNameError(folder_name, parent_id) from error

    logger.info(
        'Folder created: %s (ID: %d, parent: %s, owner: %d)',
        folder_name,
        folder.pk,
        parent_id,
        principal_id,
    )
    return folder


def update_folder(
    principal_id: int,
    folder_id: int,
    *,
    name: str | None = None,
    parent_id: int | None | object = UNSET,
) -> Folder:
    """Rename and/or move a folder.

    The cycle check and the update run in one transaction with the
    moved folder and its new parent locked.

    Args:
        principal_id: Authenticated user id.
        folder_id: Folder to change.
        name: New name, None keeps the current one.
        parent_id: New parent id, None moves to root, UNSET keeps it.

    Returns:
        Updated Folder instance.

    Raises:
        ValidationError: If the new name is empty or too long.
        NotFoundError: If the folder or the new parent does not exist.
        ForbiddenError: If either belongs to someone else.
        SelfParentError: If the folder is moved into itself.
        CircularReferenceError: If the new parent is a descendant.
        DuplicateNameError: If the target scope already has the name.
    """
    new_name = None if name is None else clean_name(name)

    with atomic():
        folder = authorize(principal_id, Folder, folder_id, for_update=True)
        target_parent_id = folder.parent_id

        if parent_id is not UNSET:
            target_parent_id = parent_id  # type: ignore[assignment]

        if target_parent_id is not None and target_parent_id != folder.parent_id:
            _check_move_target(principal_id, folder, target_parent_id)

        target_name = new_name or folder.name
        if target_name == folder.name and target_parent_id == folder.parent_id:
            logger.debug('Folder update is a no-op: ID=%d', folder.pk)
            return folder

        _ensure_unique_name(
            principal_id,
            target_parent_id,
            target_name,
            exclude_id=folder.pk,
        )

        old_name = folder.name
        old_parent_id = folder.parent_id
        folder.name = target_name
        folder.parent_id = target_parent_id
        try:
            with atomic():
                folder.save(update_fields=['name', 'parent', 'updated_at'])
        except IntegrityError as error:
            raise DuplicateNameError(target_name, target_parent_id) from error

    logger.info(
        'Folder updated: ID=%d, %s -> %s, parent %s -> %s',
        folder.pk,
        old_name,
        target_name,
        old_parent_id,
        target_parent_id,
    )
    return folder


def _check_move_target(
    principal_id: int,
    folder: Folder,
    target_parent_id: int,
) -> None:
    """Validate a new parent for ``folder``.

    Args:
        principal_id: Authenticated user id.
        folder: Folder being moved (already authorized).
        target_parent_id: Requested new parent.

    Raises:
        SelfParentError: If the target is the folder itself.
        NotFoundError: If the target does not exist.
        ForbiddenError: If the target belongs to someone else.
        CircularReferenceError: If the target lies inside the folder.
    """
    if target_parent_id == folder.pk:
        raise SelfParentError(folder.pk)

    authorize(principal_id, Folder, target_parent_id, for_update=True)

    if is_within(target_parent_id, folder.pk):
        logger.warning(
            'Rejected move of folder %d under its descendant %d',
            folder.pk,
            target_parent_id,
        )
        raise CircularReferenceError(folder.pk, target_parent_id)


def build_tree(
    roots: Iterable[Folder],
    *,
    include_files: bool = False,
) -> list[FolderNode]:
    """Expand folders into nested nodes, one query per tree level.

    Children are ordered by name, files by name. Recursion is replaced
    by a level-by-level walk, so deep trees cannot hit the interpreter
    recursion limit.

    Args:
        roots: Folders to expand (same owner).
        include_files: Also attach each folder's direct files.

    Returns:
        One node per root, in the order given.
    """
    root_nodes = [FolderNode(folder) for folder in roots]
    nodes = {node.folder.pk: node for node in root_nodes}
    frontier = list(nodes)

    while frontier:
        if include_files:
            _attach_files(nodes, frontier)

        next_frontier: list[int] = []
        for chunk in batched(frontier, _QUERY_BATCH_SIZE):
            children = Folder.objects.filter(
                parent_id__in=chunk,
            ).order_by('name', 'pk')
            for child in children:
                if child.pk in nodes:
                    continue
                node = FolderNode(child)
                nodes[child.pk] = node
                nodes[child.parent_id].children.append(node)
                next_frontier.append(child.pk)
        frontier = next_frontier

    return root_nodes


def _attach_files(nodes: dict[int, FolderNode], folder_ids: list[int]) -> None:
    """Load the direct files of ``folder_ids`` into their nodes."""
    for chunk in batched(folder_ids, _QUERY_BATCH_SIZE):
        files = File.objects.filter(folder_id__in=chunk).order_by('name', 'pk')
        for file_instance in files:
            nodes[file_instance.folder_id].files.append(file_instance)


def list_folders(
    principal_id: int,
    folder_id: int | None = None,
    *,
    include_nested: bool = False,
) -> list[FolderNode]:
    """List root folders or the direct children of a folder.

    Args:
        principal_id: Authenticated user id.
        folder_id: Folder to list, None for the principal's roots.
        include_nested: Expand every child depth-first into a tree.

    Returns:
        Nodes ordered by name; children are empty unless include_nested.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    if folder_id is None:
        folders = Folder.objects.filter(
            owner_id=principal_id,
            parent__isnull=True,
        )
    else:
        authorize(principal_id, Folder, folder_id)
        folders = Folder.objects.filter(
            owner_id=principal_id,
            parent_id=folder_id,
        )
    folders = folders.order_by('name', 'pk')

    logger.debug(
        'Listing folders for user %d under %s (nested: %s)',
        principal_id,
        folder_id,
        include_nested,
    )

    if include_nested:
        return build_tree(folders)
    return [FolderNode(folder) for folder in folders]


def get_folder_path(principal_id: int, folder_id: int) -> list[Folder]:
    """Get the breadcrumb path of a folder.

    Args:
        principal_id: Authenticated user id.
        folder_id: Folder whose path to build.

    Returns:
        Folders from the root down to ``folder_id`` inclusive.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    authorize(principal_id, Folder, folder_id)
    chain = list(iter_ancestor_ids(folder_id))
    folders = Folder.objects.in_bulk(chain)
    return [folders[ancestor_id] for ancestor_id in reversed(chain)]


def get_folder_details(principal_id: int, folder_id: int) -> FolderDetails:
    """Get a folder with its direct content counts and path.

    Args:
        principal_id: Authenticated user id.
        folder_id: Folder to describe.

    Returns:
        FolderDetails instance.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    folder = authorize(principal_id, Folder, folder_id)
    return FolderDetails(
        folder=folder,
        child_count=Folder.objects.filter(parent_id=folder.pk).count(),
        file_count=File.objects.filter(folder_id=folder.pk).count(),
        path=get_folder_path(principal_id, folder_id),
    )


def delete_folder(
    principal_id: int,
    folder_id: int,
    *,
    recursive: bool = False,
) -> FolderDeletion:
    """Delete a folder, optionally with everything beneath it.

    Deleting an id that no longer exists is a successful no-op, so an
    interrupted recursive delete can simply be retried.

    Args:
        principal_id: Authenticated user id.
        folder_id: Folder to delete.
        recursive: Also delete subfolders and files at any depth.

    Returns:
        FolderDeletion with the number of removed folders and files.

    Raises:
        ForbiddenError: If the folder belongs to someone else.
        NotEmptyError: If not recursive and the folder has content.
    """
    with atomic():
        try:
            folder = authorize(principal_id, Folder, folder_id, for_update=True)
        except NotFoundError:
            logger.info('Folder already deleted: ID=%d', folder_id)
            return FolderDeletion(
                folder_id=folder_id,
                recursive=recursive,
                already_deleted=True,
            )

        child_count = Folder.objects.filter(parent_id=folder.pk).count()
        file_count = File.objects.filter(folder_id=folder.pk).count()

        if (child_count or file_count) and not recursive:
            raise NotEmptyError(folder.pk, child_count, file_count)

        deleted_folders, deleted_files = _delete_subtree(folder.pk)

    logger.info(
        'Folder deleted: ID=%d (%d folders, %d files, recursive: %s)',
        folder_id,
        deleted_folders,
        deleted_files,
        recursive,
    )
    return FolderDeletion(
        folder_id=folder_id,
        recursive=recursive,
        deleted_folders=deleted_folders,
        deleted_files=deleted_files,
    )


def _collect_levels(folder_id: int) -> list[list[int]]:
    """Collect subtree folder ids level by level, locking each row.

    Args:
        folder_id: Subtree root.

    Returns:
        Lists of ids: ``[[folder_id], [children...], [grandchildren...]]``.
    """
    levels = [[folder_id]]
    seen = {folder_id}
    while levels[-1]:
        next_level: list[int] = []
        for chunk in batched(levels[-1], _QUERY_BATCH_SIZE):
            child_ids = Folder.objects.select_for_update().filter(
                parent_id__in=chunk,
            ).values_list('pk', flat=True)
            next_level.extend(
                child_id for child_id in child_ids if child_id not in seen
            )
        seen.update(next_level)
        levels.append(next_level)
    return levels[:-1]


def _delete_subtree(folder_id: int) -> tuple[int, int]:
    """Delete a subtree leaf-first: files, then their folders.

    Must run inside a transaction. Should the store not roll back, a
    failure leaves only empty, still-referenced folders behind.

    Args:
        folder_id: Subtree root.

    Returns:
        Tuple of (deleted folders, deleted files).
    """
    deleted_folders = 0
    deleted_files = 0
    for level in reversed(_collect_levels(folder_id)):
        for chunk in batched(level, _QUERY_BATCH_SIZE):
            # post_delete signal schedules blob cleanup after commit
            files_count, _ = File.objects.filter(folder_id__in=chunk).delete()
            _, per_model = Folder.objects.filter(pk__in=chunk).delete()
            deleted_files += files_count
            deleted_folders += per_model.get(Folder._meta.label, 0)  # noqa: SLF001
    return deleted_folders, deleted_files
