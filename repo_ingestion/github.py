from __future__ import annotations  # GitHub REST client for repository contents

import base64
import logging
from typing import Any, Dict, List, Literal, Optional, Protocol
from urllib.parse import quote, urlparse

import httpx
from pydantic import BaseModel

from interview_session.errors import NotFound, UpstreamFailure


logger = logging.getLogger(__name__)

GITHUB_HOSTS = {"github.com", "www.github.com"}


class RepoRef(BaseModel):  # Owner/name pair identifying a hosted repository
    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"


class TreeEntry(BaseModel):  # One item of a directory listing
    path: str
    type: Literal["file", "dir", "symlink", "submodule"]
    size: int = 0


class RepositorySource(Protocol):  # Hosting contract consumed by ingestion
    def default_branch(self, repo: RepoRef) -> str: ...

    def list_tree(self, repo: RepoRef, path: str, ref: str) -> List[TreeEntry]: ...

    def read_file(self, repo: RepoRef, path: str, ref: str) -> bytes: ...


def parse_github_url(url: str) -> Optional[RepoRef]:  # Extract owner/name from a github.com URL
    try:
        parsed = urlparse(url.strip())
    except (AttributeError, ValueError):
        return None
    if parsed.scheme not in {"http", "https"}:
        return None
    if (parsed.hostname or "").lower() not in GITHUB_HOSTS:
        return None
    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) < 2:
        return None
    name = parts[1][:-4] if parts[1].endswith(".git") else parts[1]
    if not name:
        return None
    return RepoRef(owner=parts[0], name=name)


class GitHubSource:  # httpx-backed implementation of the hosting contract
    def __init__(
        self,
        *,
        api_url: str = "https://api.github.com",
        token: Optional[str] = None,
        timeout_s: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=api_url.rstrip("/"), timeout=timeout_s, headers=headers)

    def default_branch(self, repo: RepoRef) -> str:
        data = self._get(f"/repos/{repo.owner}/{repo.name}")
        branch = data.get("default_branch") if isinstance(data, dict) else None
        if not branch:
            raise UpstreamFailure(f"GitHub did not report a default branch for {repo.slug}")
        return str(branch)

    def list_tree(self, repo: RepoRef, path: str, ref: str) -> List[TreeEntry]:
        data = self._get(self._contents_url(repo, path), params={"ref": ref})
        if not isinstance(data, list):
            return []
        entries: List[TreeEntry] = []
        for item in data:
            if not isinstance(item, dict) or item.get("type") not in {"file", "dir", "symlink", "submodule"}:
                continue
            entries.append(TreeEntry(path=item["path"], type=item["type"], size=int(item.get("size") or 0)))
        return entries

    def read_file(self, repo: RepoRef, path: str, ref: str) -> bytes:
        data = self._get(self._contents_url(repo, path), params={"ref": ref})
        if not isinstance(data, dict) or not data.get("content"):
            raise NotFound(f"No inline content for {repo.slug}:{path}")
        try:
            return base64.b64decode(data["content"])
        except (ValueError, TypeError) as exc:
            raise UpstreamFailure(f"Undecodable content for {repo.slug}:{path}") from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _contents_url(self, repo: RepoRef, path: str) -> str:
        cleaned = quote(path.strip("/"), safe="/")
        return f"/repos/{repo.owner}/{repo.name}/contents/{cleaned}"

    def _get(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        try:
            response = self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"GitHub request failed: {exc}") from exc
        if response.status_code == 404:
            raise NotFound("Repository or path not found")
        if response.status_code in {403, 429}:
            remaining = response.headers.get("x-ratelimit-remaining")
            logger.warning("GitHub refused %s with %s (rate limit remaining: %s)", url, response.status_code, remaining)
            raise UpstreamFailure(f"GitHub rate limit or permission error ({response.status_code})")
        if response.status_code >= 400:
            raise UpstreamFailure(f"GitHub error {response.status_code}: {response.text[:200]}")
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFailure("GitHub returned a non-JSON response") from exc


__all__ = ["GITHUB_HOSTS", "GitHubSource", "RepoRef", "RepositorySource", "TreeEntry", "parse_github_url"]
