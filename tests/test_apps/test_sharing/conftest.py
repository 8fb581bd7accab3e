"""Shared fixtures for sharing app tests."""

from datetime import UTC, datetime

import pytest


@pytest.fixture
def frozen_now():
    """Fixed reference time for expiry arithmetic.

    Returns:
        Timezone-aware datetime.
    """
    return datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def shared_tree(user, make_folder, make_file):
    """Folder tree with files at several levels.

    Layout::

        Projects/
            brief.txt
            Design/
                logo.txt
                Drafts/
                    sketch.txt
        Private/
            diary.txt

    Returns:
        Dict of the created folders and files by name.
    """
    projects = make_folder(user, 'Projects')
    design = make_folder(user, 'Design', projects)
    drafts = make_folder(user, 'Drafts', design)
    private = make_folder(user, 'Private')
    return {
        'Projects': projects,
        'Design': design,
        'Drafts': drafts,
        'Private': private,
        'brief.txt': make_file(user, 'brief.txt', projects, size_bytes=1024),
        'logo.txt': make_file(user, 'logo.txt', design, size_bytes=512),
        'sketch.txt': make_file(user, 'sketch.txt', drafts),
        'diary.txt': make_file(user, 'diary.txt', private),
    }
