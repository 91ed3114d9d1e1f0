"""
Unit tests for directory listings.
"""

import os
import sys

import pytest

from staticserver.handlers.directory import (
    DirectoryEntry,
    DirectoryListingError,
    DirectoryRenderer,
)
from staticserver.http.status_codes import HTTPStatus
from staticserver.server import load_listing_template


LINKS_TEMPLATE = "<% for f in files: %><%= f.url %>|<% end %>"


class TestListEntries:
    """Tests for enumerating a directory."""

    def test_root_links(self, site):
        """Test links for entries of the root directory."""
        entries = DirectoryRenderer(LINKS_TEMPLATE).list_entries(str(site), "/")

        assert set(entries) == {
            DirectoryEntry("a.txt", "/a.txt"),
            DirectoryEntry("sub", "/sub"),
        }

    def test_subdirectory_links(self, site):
        """Test that links are prefixed with the request path."""
        entries = DirectoryRenderer(LINKS_TEMPLATE).list_entries(str(site / "sub"), "/sub")

        assert entries == [DirectoryEntry("page.html", "/sub/page.html")]

    def test_trailing_slash(self, site):
        """Test that a trailing slash does not double up."""
        entries = DirectoryRenderer(LINKS_TEMPLATE).list_entries(str(site / "sub"), "/sub/")

        assert entries[0].url == "/sub/page.html"

    def test_links_are_percent_encoded(self, tmp_path):
        """Test that names are quoted for use in href."""
        (tmp_path / "my file&co.txt").write_bytes(b"")

        entries = DirectoryRenderer(LINKS_TEMPLATE).list_entries(str(tmp_path), "/")

        assert entries == [DirectoryEntry("my file&co.txt", "/my%20file%26co.txt")]

    def test_hidden_files_listed(self, tmp_path):
        """Test that dotfiles are not filtered out."""
        (tmp_path / ".hidden").write_bytes(b"")

        entries = DirectoryRenderer(LINKS_TEMPLATE).list_entries(str(tmp_path), "/")

        assert [e.name for e in entries] == [".hidden"]

    @pytest.mark.skipif(sys.platform != "linux", reason="needs byte file names")
    def test_undecodable_name(self, tmp_path):
        """Test that a name that is not UTF-8 still gets a link."""
        with open(os.path.join(os.fsencode(tmp_path), b"bad\xff.txt"), "wb"):
            pass
        (tmp_path / "ok.txt").write_bytes(b"")

        entries = DirectoryRenderer(LINKS_TEMPLATE).list_entries(str(tmp_path), "/")

        assert set(entries) == {
            DirectoryEntry("ok.txt", "/ok.txt"),
            DirectoryEntry("bad\ufffd.txt", "/bad%FF.txt"),
        }

    def test_missing_directory(self, tmp_path):
        """Test that a failed listing raises DirectoryListingError."""
        with pytest.raises(DirectoryListingError):
            DirectoryRenderer(LINKS_TEMPLATE).list_entries(str(tmp_path / "gone"), "/gone")


class TestDirectoryRenderer:
    """Tests for rendering listing pages."""

    def test_render(self, site, make_context):
        """Test a successful listing response."""
        renderer = DirectoryRenderer(LINKS_TEMPLATE)

        response = renderer.render(make_context(site / "sub", "/sub"))

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert response.body == b"/sub/page.html|"

    def test_empty_directory(self, tmp_path, make_context):
        """Test that an empty directory renders an empty list."""
        response = DirectoryRenderer(LINKS_TEMPLATE).render(make_context(tmp_path, "/"))

        assert response.status == HTTPStatus.OK
        assert response.body == b""

    def test_listing_failure_is_500(self, tmp_path, make_context):
        """Test that an unreadable directory gives 500."""
        response = DirectoryRenderer(LINKS_TEMPLATE).render(
            make_context(tmp_path / "gone", "/gone")
        )

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR

    def test_template_failure_is_500(self, site, make_context):
        """Test that a failing template gives 500 and no partial page."""
        renderer = DirectoryRenderer("<%= undefined_name %>")

        response = renderer.render(make_context(site, "/"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert b"undefined_name" not in response.body


class TestBundledTemplate:
    """Tests for the listing template shipped with the package."""

    def test_links_and_names(self, site, make_context):
        """Test that the page links every entry."""
        renderer = DirectoryRenderer(load_listing_template())

        page = renderer.render(make_context(site, "/")).body.decode("utf-8")

        assert '<a href="/a.txt">a.txt</a>' in page
        assert '<a href="/sub">sub</a>' in page
        assert "Index of /" in page

    def test_names_are_escaped(self, tmp_path, make_context):
        """Test that markup in file names is escaped."""
        (tmp_path / "<b>.txt").write_bytes(b"")
        renderer = DirectoryRenderer(load_listing_template())

        page = renderer.render(make_context(tmp_path, "/")).body.decode("utf-8")

        assert "&lt;b&gt;.txt" in page
        assert "<b>.txt" not in page

    @pytest.mark.skipif(sys.platform != "linux", reason="needs byte file names")
    def test_undecodable_name_renders(self, tmp_path, make_context):
        """Test that one odd name does not fail the whole page."""
        with open(os.path.join(os.fsencode(tmp_path), b"bad\xff.txt"), "wb"):
            pass
        (tmp_path / "ok.txt").write_bytes(b"")
        renderer = DirectoryRenderer(load_listing_template())

        response = renderer.render(make_context(tmp_path, "/"))

        page = response.body.decode("utf-8")
        assert response.status == HTTPStatus.OK
        assert '<a href="/ok.txt">ok.txt</a>' in page
        assert '<a href="/bad%FF.txt">bad\ufffd.txt</a>' in page
