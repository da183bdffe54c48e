"""Tests for local path <-> repository path mapping."""

from pathlib import Path

import pytest

from jcr_mcp_server.sync.mapper import PathMapper, find_content_root, is_content_file


@pytest.fixture
def jcr_root(tmp_path):
    root = tmp_path / "ui.apps" / "src" / "main" / "content" / "jcr_root"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def mapper(jcr_root):
    return PathMapper(jcr_root)


class TestToRemotePath:
    def test_content_file_maps_to_node(self, mapper, jcr_root):
        assert (
            mapper.to_remote_path(jcr_root / "content" / "site" / ".content.xml")
            == "/content/site"
        )

    def test_plain_file_maps_to_file_node(self, mapper, jcr_root):
        assert (
            mapper.to_remote_path(jcr_root / "apps" / "site" / "app.js")
            == "/apps/site/app.js"
        )

    def test_namespaced_segments(self, mapper, jcr_root):
        local = jcr_root / "apps" / "site" / "_cq_dialog" / ".content.xml"
        assert mapper.to_remote_path(local) == "/apps/site/cq:dialog"

    def test_escaped_underscore(self, mapper, jcr_root):
        local = jcr_root / "apps" / "__private" / "x.txt"
        assert mapper.to_remote_path(local) == "/apps/_private/x.txt"

    def test_root_content_file(self, mapper, jcr_root):
        assert mapper.to_remote_path(jcr_root / ".content.xml") == "/"

    def test_outside_root(self, mapper, tmp_path):
        assert mapper.to_remote_path(tmp_path / "pom.xml") is None

    def test_relative_segments_resolved(self, mapper, jcr_root):
        local = jcr_root / "apps" / ".." / "etc" / "x.txt"
        assert mapper.to_remote_path(local) == "/etc/x.txt"


class TestToLocalPath:
    def test_file(self, mapper, jcr_root):
        assert mapper.to_local_path("/apps/site/app.js") == (
            jcr_root / "apps" / "site" / "app.js"
        )

    def test_content_file(self, mapper, jcr_root):
        assert mapper.to_local_path(
            "/content/site/jcr:content", content_file=True
        ) == (jcr_root / "content" / "site" / "_jcr_content" / ".content.xml")

    def test_root(self, mapper, jcr_root):
        assert mapper.to_local_path("/", content_file=True) == (
            jcr_root / ".content.xml"
        )

    def test_reverses_to_remote_path(self, mapper):
        for remote in ("/apps/site/cq:dialog", "/apps/_private", "/content/a"):
            local = mapper.to_local_path(remote, content_file=True)
            assert mapper.to_remote_path(local) == remote


def test_is_content_file():
    assert is_content_file(Path("/x/.content.xml"))
    assert not is_content_file(Path("/x/content.xml"))


class TestFindContentRoot:
    def test_finds_conventional_location(self, tmp_path, jcr_root):
        assert find_content_root(tmp_path / "ui.apps") == jcr_root.resolve()

    def test_prefers_top_level_jcr_root(self, tmp_path):
        (tmp_path / "jcr_root").mkdir()
        (tmp_path / "src" / "main" / "jcr_root").mkdir(parents=True)
        assert find_content_root(tmp_path) == (tmp_path / "jcr_root").resolve()

    def test_none_found(self, tmp_path):
        assert find_content_root(tmp_path) is None
