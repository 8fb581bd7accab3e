"""Record store adapter over the Django ORM.

The engine talks to the relational store through ``atomic()`` so that
every multi-row mutation runs in one transaction and store outages are
reported as :class:`UnavailableError` instead of driver exceptions.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from django.db import OperationalError, transaction

from server.apps.files.exceptions import UnavailableError

logger = logging.getLogger(__name__)

_SERVICE_NAME = 'record store'


@contextmanager
def atomic() -> Iterator[None]:
    """Run the enclosed block in a database transaction.

    Nested calls create savepoints, as ``transaction.atomic`` does.

    Yields:
        Nothing; the block commits on normal exit.

    Raises:
        UnavailableError: If the store timed out or refused the connection.
    """
    try:
        with transaction.atomic():
            yield
    except OperationalError as error:
        logger.exception('Record store operation failed')
        raise UnavailableError(_SERVICE_NAME, str(error)) from error


def run_after_commit(
    callback: Callable[[], object],
    *,
    description: str,
) -> None:
    """Schedule a side effect to run once the current transaction commits.

    Outside a transaction the callback runs immediately. Rolled back
    transactions drop the callback.

    Args:
        callback: Zero-argument callable.
        description: Text used in log messages.
    """
    logger.debug('Scheduling after-commit action: %s', description)
    transaction.on_commit(callback)
