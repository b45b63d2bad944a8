from __future__ import annotations

import base64

import httpx
import pytest

from interview_session.errors import NotFound, UpstreamFailure, ValidationError
from repo_ingestion import (
    GitHubSource,
    IngestionLimits,
    RepoRef,
    build_file_tree,
    directories_from_structure,
    fetch_repository,
    in_scope,
    language_for_path,
    parse_github_url,
    should_include,
)
from repo_ingestion.ingestion import RepoFile
from tests.fakes import STUB_FILES, FakeSource

URL = "https://github.com/acme/demo"


def test_parse_github_url_variants():
    assert parse_github_url("https://github.com/acme/demo") == RepoRef(owner="acme", name="demo")
    assert parse_github_url("https://www.github.com/acme/demo.git/tree/main") == RepoRef(owner="acme", name="demo")
    assert parse_github_url("https://gitlab.com/acme/demo") is None
    assert parse_github_url("https://github.com/acme") is None
    assert parse_github_url("not a url") is None


def test_language_for_path():
    assert language_for_path("src/app.tsx") == "tsx"
    assert language_for_path("Dockerfile") == "dockerfile"
    assert language_for_path("notes.unknown") == "text"


def test_should_include_rules():
    assert should_include("src/index.ts")
    assert not should_include("node_modules/lib/index.js")
    assert not should_include("assets/logo.PNG")
    assert not should_include(".env")
    assert should_include(".env.example")
    assert should_include(".eslintrc.json")


def test_scope_is_symmetric_prefix():
    assert in_scope("src", ["src/api"])
    assert in_scope("src/api/users.ts", ["src/api"])
    assert not in_scope("lib/util.ts", ["src/api"])
    assert in_scope("anything", [])


def test_fetch_whole_repository(fake_source):
    repo = fetch_repository(fake_source, URL)
    assert sorted(f.path for f in repo.files) == sorted(STUB_FILES)
    assert repo.default_branch == "main"
    assert directories_from_structure(repo.structure) == ["src", "src/routes"]
    assert repo.total_bytes == sum(f.size for f in repo.files)


def test_fetch_respects_scope_and_exclusions():
    source = FakeSource(
        {
            "README.md": "# demo",
            "src/api/users.ts": "export {}",
            "src/web/page.tsx": "export {}",
            "src/api/node_modules/x.js": "nope",
            "src/api/logo.png": "binary",
        }
    )
    repo = fetch_repository(source, URL, ["src/api"])
    assert [f.path for f in repo.files] == ["src/api/users.ts"]
    assert "src/web" not in source.listed


def test_subdirectory_and_file_failures_are_skipped():
    source = FakeSource(
        {"a.ts": "a", "broken/b.ts": "b", "ok/c.ts": "c", "ok/d.ts": "d"},
        fail_list=["broken"],
        fail_read=["ok/d.ts"],
    )
    repo = fetch_repository(source, URL)
    assert sorted(f.path for f in repo.files) == ["a.ts", "ok/c.ts"]


def test_top_level_listing_failure_is_fatal():
    source = FakeSource({"a.ts": "a"}, fail_list=[""])
    with pytest.raises(UpstreamFailure):
        fetch_repository(source, URL)


def test_missing_repository_is_not_found():
    with pytest.raises(NotFound):
        fetch_repository(FakeSource({}, missing=True), URL)


def test_invalid_url_is_validation_error(fake_source):
    with pytest.raises(ValidationError):
        fetch_repository(fake_source, "https://example.com/acme/demo")


def test_limits_drop_large_and_undecodable_files_and_cap_count():
    source = FakeSource(
        {"big.ts": "x", "bin.dat": b"\xff\xfe\x00", "a.ts": "a", "b.ts": "b", "c.ts": "c", "d.ts": "d"},
        sizes={"big.ts": 200_000},
    )
    repo = fetch_repository(source, URL, limits=IngestionLimits(max_file_size=100_000, max_files=3))
    assert [f.path for f in repo.files] == ["a.ts", "b.ts", "c.ts"]


def test_build_file_tree_nests_directories():
    files = [
        RepoFile(path="src/b.ts", content="", language="typescript", size=1),
        RepoFile(path="src/a.ts", content="", language="typescript", size=1),
        RepoFile(path="top.md", content="", language="markdown", size=1),
    ]
    tree = build_file_tree(files)
    assert [node.name for node in tree] == ["src", "top.md"]
    assert [child.path for child in tree[0].children or []] == ["src/a.ts", "src/b.ts"]


def _github_client(handler) -> httpx.Client:
    return httpx.Client(base_url="https://api.github.com", transport=httpx.MockTransport(handler))


def test_github_source_reads_contents():
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/repos/acme/demo":
            return httpx.Response(200, json={"default_branch": "trunk"})
        if path == "/repos/acme/demo/contents/":
            assert request.url.params["ref"] == "trunk"
            return httpx.Response(
                200,
                json=[
                    {"path": "src", "type": "dir", "size": 0},
                    {"path": "README.md", "type": "file", "size": 6},
                ],
            )
        if path == "/repos/acme/demo/contents/README.md":
            return httpx.Response(200, json={"content": base64.b64encode(b"# demo").decode()})
        return httpx.Response(404, json={"message": "Not Found"})

    source = GitHubSource(client=_github_client(handler))
    repo = RepoRef(owner="acme", name="demo")
    assert source.default_branch(repo) == "trunk"
    entries = source.list_tree(repo, "", "trunk")
    assert [(e.path, e.type) for e in entries] == [("src", "dir"), ("README.md", "file")]
    assert source.read_file(repo, "README.md", "trunk") == b"# demo"
    with pytest.raises(NotFound):
        source.read_file(repo, "missing.ts", "trunk")


def test_github_source_maps_rate_limit_and_transport_errors():
    def limited(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, headers={"x-ratelimit-remaining": "0"}, json={"message": "rate limited"})

    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    repo = RepoRef(owner="acme", name="demo")
    with pytest.raises(UpstreamFailure):
        GitHubSource(client=_github_client(limited)).default_branch(repo)
    with pytest.raises(UpstreamFailure):
        GitHubSource(client=_github_client(broken)).default_branch(repo)
