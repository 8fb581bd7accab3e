"""Tests for unauthenticated access through share links."""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from server.apps.files.exceptions import (
    ExpiredError,
    ForbiddenError,
    NotFoundError,
)
from server.apps.files.logic.folder_operations import update_folder
from server.apps.sharing.logic.public_access import (
    get_shared_file,
    open_shared_folder,
)
from server.apps.sharing.logic.share_operations import (
    issue_share_link,
    revoke_share_link,
)


def _expires_param(url):
    return int(parse_qs(urlparse(url).query)['X-Amz-Expires'][0])


@pytest.mark.django_db
class TestOpenSharedFolder:
    """Tests for open_shared_folder."""

    def test_open_expands_subtree(self, user, shared_tree, mock_s3, frozen_now):
        """Test the whole subtree is returned with files at every level."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        view = open_shared_folder(
            issued.token,
            now=frozen_now + timedelta(hours=1),
        )

        root = view.folder
        assert root.name == 'Projects'
        assert [shared.name for shared in root.files] == ['brief.txt']
        assert [sub.name for sub in root.subfolders] == ['Design']
        design = root.subfolders[0]
        assert [shared.name for shared in design.files] == ['logo.txt']
        drafts = design.subfolders[0]
        assert drafts.name == 'Drafts'
        assert [shared.name for shared in drafts.files] == ['sketch.txt']
        assert not drafts.subfolders

        assert view.owner_name == 'Test User'
        assert view.expires_at == frozen_now + timedelta(days=1)
        assert view.remaining == timedelta(hours=23)

    def test_open_exposes_no_credentials(
        self,
        user,
        shared_tree,
        mock_s3,
        frozen_now,
    ):
        """Test public views carry signed URLs, not storage keys."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        view = open_shared_folder(issued.token, now=frozen_now)

        brief = view.folder.files[0]
        assert brief.formatted_size == '1 KB'
        assert brief.url.startswith('http')
        assert 'X-Amz-Signature' in brief.url
        assert not hasattr(brief, 'blob')
        assert view.folder.file_count == 1
        assert view.folder.subfolder_count == 1
        assert view.folder.total_size == 1024

    def test_open_excludes_outside_folders(
        self,
        user,
        shared_tree,
        mock_s3,
        frozen_now,
    ):
        """Test sharing a subfolder shows nothing above or beside it."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Design'].pk,
            '1d',
            now=frozen_now,
        )

        view = open_shared_folder(issued.token, now=frozen_now)

        names = [shared.name for shared in view.folder.files]
        assert names == ['logo.txt']
        assert view.folder.subfolders[0].name == 'Drafts'

    def test_url_lifetime_capped_by_link(
        self,
        user,
        shared_tree,
        mock_s3,
        frozen_now,
    ):
        """Test file URLs never outlive the share link."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1h',
            now=frozen_now,
        )

        view = open_shared_folder(
            issued.token,
            now=frozen_now + timedelta(minutes=50),
            url_ttl=3600,
        )

        assert _expires_param(view.folder.files[0].url) == 600

    def test_url_lifetime_explicit_zero(
        self,
        user,
        shared_tree,
        mock_s3,
        frozen_now,
        settings,
    ):
        """Test an explicit zero lifetime is not replaced by the default."""
        settings.SHARE_URL_TTL_SECONDS = 3600
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        view = open_shared_folder(issued.token, now=frozen_now, url_ttl=0)

        assert _expires_param(view.folder.files[0].url) == 1

    def test_url_lifetime_default(
        self,
        user,
        shared_tree,
        mock_s3,
        frozen_now,
        settings,
    ):
        """Test the configured lifetime applies when none is requested."""
        settings.SHARE_URL_TTL_SECONDS = 120
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        view = open_shared_folder(issued.token, now=frozen_now)

        assert _expires_param(view.folder.files[0].url) == 120

    def test_open_expired(self, user, shared_tree, frozen_now):
        """Test an expired link is reported as expired."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        with pytest.raises(ExpiredError):
            open_shared_folder(
                issued.token,
                now=frozen_now + timedelta(hours=25),
            )

    def test_open_revoked(self, user, shared_tree):
        """Test a revoked link is reported as not found."""
        issued = issue_share_link(user.pk, shared_tree['Projects'].pk, '1d')
        revoke_share_link(user.pk, issued.link.pk)

        with pytest.raises(NotFoundError):
            open_shared_folder(issued.token)

    def test_open_reflects_later_moves(
        self,
        user,
        shared_tree,
        mock_s3,
        frozen_now,
    ):
        """Test the subtree is evaluated at access time."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )
        update_folder(
            user.pk,
            shared_tree['Private'].pk,
            parent_id=shared_tree['Projects'].pk,
        )

        view = open_shared_folder(issued.token, now=frozen_now)

        assert [sub.name for sub in view.folder.subfolders] == [
            'Design',
            'Private',
        ]


@pytest.mark.django_db
class TestGetSharedFile:
    """Tests for get_shared_file."""

    def test_get_nested_file(self, user, shared_tree, mock_s3, frozen_now):
        """Test a file at any depth under the shared folder is served."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        shared = get_shared_file(
            issued.token,
            shared_tree['sketch.txt'].pk,
            now=frozen_now,
        )

        assert shared.name == 'sketch.txt'
        assert 'response-content-disposition' in shared.url

    def test_get_file_outside_subtree(
        self,
        user,
        shared_tree,
        mock_s3,
        frozen_now,
    ):
        """Test files outside the shared subtree are denied."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Design'].pk,
            '1d',
            now=frozen_now,
        )

        with pytest.raises(ForbiddenError):
            get_shared_file(
                issued.token,
                shared_tree['brief.txt'].pk,
                now=frozen_now,
            )
        with pytest.raises(ForbiddenError):
            get_shared_file(
                issued.token,
                shared_tree['diary.txt'].pk,
                now=frozen_now,
            )

    def test_get_unfiled_file(self, user, shared_tree, make_file, frozen_now):
        """Test unfiled files are never reachable through a link."""
        unfiled = make_file(user, 'loose.txt')
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        with pytest.raises(ForbiddenError):
            get_shared_file(issued.token, unfiled.pk, now=frozen_now)

    def test_get_missing_file(self, user, shared_tree, frozen_now):
        """Test a missing file id is not found."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        with pytest.raises(NotFoundError):
            get_shared_file(issued.token, 99999, now=frozen_now)

    def test_get_file_expired_link(self, user, shared_tree, frozen_now):
        """Test an expired link serves no files."""
        issued = issue_share_link(
            user.pk,
            shared_tree['Projects'].pk,
            '1d',
            now=frozen_now,
        )

        with pytest.raises(ExpiredError):
            get_shared_file(
                issued.token,
                shared_tree['brief.txt'].pk,
                now=frozen_now + timedelta(days=1),
            )
