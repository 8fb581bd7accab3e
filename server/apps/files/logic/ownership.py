"""Ownership guard shared by every mutating operation.

Any model with an ``owner_id`` column can be guarded; share links carry
no owner and are guarded through the folder they reference.
"""

import logging
from typing import Protocol, TypeVar

from django.db import models

from server.apps.files.exceptions import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


class Owned(Protocol):
    """Anything that records which principal owns it."""

    owner_id: int


_OwnedModel = TypeVar('_OwnedModel', bound=models.Model)


def check_owner(principal_id: int, entity: Owned, entity_id: object) -> None:
    """Fail unless the principal owns the entity.

    Args:
        principal_id: Authenticated user id.
        entity: Loaded entity.
        entity_id: Identifier used in error reporting.

    Raises:
        ForbiddenError: If the entity belongs to someone else.
    """
    if entity.owner_id != principal_id:
        entity_name = type(entity).__name__
        logger.warning(
            'Ownership check failed: user %s on %s %s',
            principal_id,
            entity_name,
            entity_id,
        )
        raise ForbiddenError(entity_name, entity_id)


def authorize(
    principal_id: int,
    model: type[_OwnedModel],
    entity_id: int,
    *,
    for_update: bool = False,
) -> _OwnedModel:
    """Load an entity and verify the principal owns it.

    Pure read plus decision; no state is touched.

    Args:
        principal_id: Authenticated user id.
        model: Model class with an ``owner`` foreign key.
        entity_id: Primary key to load.
        for_update: Lock the row (only meaningful inside a transaction).

    Returns:
        The loaded entity.

    Raises:
        NotFoundError: If no such entity exists.
        ForbiddenError: If the entity belongs to someone else.
    """
    queryset = model._default_manager.all()  # noqa: SLF001
    if for_update:
        queryset = queryset.select_for_update()
    try:
        entity = queryset.get(pk=entity_id)
    except model.DoesNotExist as error:  # type: ignore[attr-defined]
        raise NotFoundError(model.__name__, entity_id) from error
    check_owner(principal_id, entity, entity_id)  # type: ignore[arg-type]
    return entity
