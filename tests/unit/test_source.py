"""
Tests for installation source classification.

This test suite covers:
1. npm names (scoped, unscoped, with version)
2. git, url and local sources
3. Plugin id extraction from source strings
"""

import pytest

from nara.plugin.source import extract_id_from_source, parse_source
from nara.plugin.types import SourceType


class TestParseSource:
    """Test ordered source classification rules."""

    @pytest.mark.parametrize(
        "raw, url, version",
        [
            ("blog", "blog", None),
            ("@nara-plugin/blog", "@nara-plugin/blog", None),
            ("@nara-plugin/blog@1.2.0", "@nara-plugin/blog", "1.2.0"),
            ("blog@2.0.0-beta.1", "blog", "2.0.0-beta.1"),
            ("  landing-page  ", "landing-page", None),
        ],
    )
    def test_npm_names(self, raw, url, version):
        """Package names should classify as npm with an optional version."""
        locator = parse_source(raw)
        assert locator.type is SourceType.NPM
        assert locator.url == url
        assert locator.version == version

    @pytest.mark.parametrize(
        "raw",
        [
            "git+https://example.com/user/plugin",
            "https://github.com/user/my-plugin",
            "https://gitlab.com/user/my-plugin",
            "git@bitbucket.org:user/my-plugin",
            "ssh://example.com/plugins/my-plugin.git",
        ],
    )
    def test_git_sources(self, raw):
        """git+ prefixes, known hosts and .git suffixes should classify as git."""
        assert parse_source(raw).type is SourceType.GIT

    def test_url_source(self):
        """Other http(s) URLs should classify as url."""
        locator = parse_source("https://example.com/plugins/blog.tgz")
        assert locator.type is SourceType.URL
        assert locator.url == "https://example.com/plugins/blog.tgz"

    @pytest.mark.parametrize("raw", ["./plugins/blog", "/opt/plugins/blog", "~/blog"])
    def test_local_sources(self, raw):
        """Path-like sources should classify as local."""
        locator = parse_source(raw)
        assert locator.type is SourceType.LOCAL
        assert locator.url == raw

    def test_scoped_name_not_a_path(self):
        """A scoped name should never be taken for a path."""
        assert parse_source("@scope/name").type is SourceType.NPM

    def test_fallback_to_npm(self):
        """Anything unmatched should default to npm."""
        assert parse_source("My Plugin").type is SourceType.NPM


class TestExtractId:
    """Test plugin id extraction."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("@nara-plugin/blog", "blog"),
            ("@nara-plugin/blog@1.0.0", "blog"),
            ("blog", "blog"),
            ("https://github.com/user/my-plugin.git", "my-plugin"),
            ("https://example.com/dl/shop.tgz?token=abc", "shop"),
            ("./local/awesome-plugin/", "awesome-plugin"),
            ("/tmp/archive-plugin.tar.gz", "archive-plugin"),
        ],
    )
    def test_extract_id(self, raw, expected):
        """Ids should drop scopes, versions, paths and archive suffixes."""
        assert extract_id_from_source(raw) == expected
