"""Hosted release providers (GitHub, GitLab).

Both providers find their repository from the ``origin`` URL and their token
from the environment variable named by ``tokenRef``. A missing token or an
unrecognised remote skips the provider with a warning (``Ok(None)``); an API
failure is a ``publication`` error.
"""

from __future__ import annotations

import re
import urllib.parse
from collections.abc import Mapping
from dataclasses import dataclass

from reliz.core.config import GitHubConfig, GitLabConfig
from reliz.core.errors import ReleaseError
from reliz.core.result import Err, Ok, Result
from reliz.core.structured import get_str, get_table
from reliz.output.console import ConsoleProtocol
from reliz.platform.http import HttpClient

__all__ = [
    "GITHUB_API",
    "GitHubProvider",
    "GitHubRepo",
    "GitLabProject",
    "GitLabProvider",
    "ReleaseRequest",
    "parse_github_remote",
    "parse_gitlab_remote",
]

GITHUB_API = "https://api.github.com"

_GITHUB_REMOTE_RE = re.compile(r"(?:github\.com[:/]|git@github\.com:)([^/]+)/([^/.]+)(?:\.git)?$")
_GITLAB_COM_RE = re.compile(r"(?:gitlab\.com[:/]|git@gitlab\.com:)([^/]+)/([^/.]+)(?:\.git)?$", re.IGNORECASE)
_GITLAB_HTTP_RE = re.compile(r"^(https?)://([^/]+)/([^/]+)/([^/.]+)(?:\.git)?/?$", re.IGNORECASE)
_GITLAB_SSH_RE = re.compile(r"^(?:ssh://)?git@([^:/]+)[:/]([^/]+)/([^/.]+)(?:\.git)?/?$")


@dataclass(frozen=True, slots=True)
class ReleaseRequest:
    tag_name: str
    title: str
    body: str
    draft: bool = False
    prerelease: bool = False


@dataclass(frozen=True, slots=True)
class GitHubRepo:
    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True, slots=True)
class GitLabProject:
    host: str
    path: str
    scheme: str = "https"

    @property
    def api_base(self) -> str:
        return f"{self.scheme}://{self.host}/api/v4"


def parse_github_remote(url: str | None) -> GitHubRepo | None:
    """Parse ``git@github.com:o/r.git`` or ``https://github.com/o/r`` style remotes."""
    if not url:
        return None
    m = _GITHUB_REMOTE_RE.search(url.strip())
    if not m:
        return None
    return GitHubRepo(owner=m.group(1), repo=m.group(2).removesuffix(".git"))


def _scheme_for(host: str) -> str:
    if host == "gitlab.com" or host.endswith(".com") or host.endswith(".org"):
        return "https"
    return "http"


def parse_gitlab_remote(url: str | None) -> GitLabProject | None:
    """Parse gitlab.com remotes and ``http(s)://host/group/project`` self-hosted ones.

    Self-hosted http(s) remotes keep their own scheme; for SSH remotes the API
    scheme is guessed from the host (https for .com and .org).
    """
    if not url:
        return None
    text = url.strip()
    m = _GITLAB_COM_RE.search(text)
    if m:
        return GitLabProject(host="gitlab.com", path=f"{m.group(1)}/{m.group(2).removesuffix('.git')}")
    m = _GITLAB_HTTP_RE.match(text)
    if m:
        host = m.group(2)
        return GitLabProject(
            host=host,
            path=f"{m.group(3)}/{m.group(4).removesuffix('.git')}",
            scheme=m.group(1).lower(),
        )
    m = _GITLAB_SSH_RE.match(text)
    if m:
        host = m.group(1)
        return GitLabProject(host=host, path=f"{m.group(2)}/{m.group(3)}", scheme=_scheme_for(host))
    return None


def _token(env: Mapping[str, str], ref: str) -> str | None:
    value = env.get(ref, "").strip()
    return value or None


@dataclass(slots=True)
class GitHubProvider:
    config: GitHubConfig
    http: HttpClient
    env: Mapping[str, str]
    console: ConsoleProtocol
    name: str = "GitHub"

    def create_release(
        self, remote_url: str | None, request: ReleaseRequest, *, dry_run: bool = False
    ) -> Result[str | None, ReleaseError]:
        token = _token(self.env, self.config.token_ref)
        if token is None:
            self.console.warning(
                f"GitHub token not found ({self.config.token_ref}). Skipping GitHub release."
            )
            return Ok(None)
        repo = parse_github_remote(remote_url)
        if repo is None:
            self.console.warning("Could not detect GitHub repo from origin. Skipping GitHub release.")
            return Ok(None)
        if dry_run:
            self.console.print(
                f"[dry-run] Would create GitHub release {request.title} for {request.tag_name}"
            )
            return Ok(None)

        url = f"{GITHUB_API}/repos/{repo.owner}/{repo.repo}/releases"
        payload = {
            "tag_name": request.tag_name,
            "name": request.title or request.tag_name,
            "body": request.body,
            "draft": request.draft,
            "prerelease": request.prerelease,
        }
        headers = {"Authorization": f"token {token}", "Accept": "application/vnd.github+json"}
        result = self.http.post_json(url, payload, headers)
        if isinstance(result, Err):
            e = result.error
            return Err(ReleaseError(kind="publication", message=f"GitHub API {e.status}: {e.message}"))
        self.console.success("GitHub release created.")
        return Ok(get_str(result.value, "html_url"))


@dataclass(slots=True)
class GitLabProvider:
    config: GitLabConfig
    http: HttpClient
    env: Mapping[str, str]
    console: ConsoleProtocol
    name: str = "GitLab"

    def create_release(
        self, remote_url: str | None, request: ReleaseRequest, *, dry_run: bool = False
    ) -> Result[str | None, ReleaseError]:
        token = _token(self.env, self.config.token_ref)
        if token is None:
            self.console.warning(
                f"GitLab token not found ({self.config.token_ref}). Skipping GitLab release."
            )
            return Ok(None)
        project = parse_gitlab_remote(remote_url)
        if project is None:
            self.console.warning("Could not detect GitLab repo from origin. Skipping GitLab release.")
            return Ok(None)
        if dry_run:
            self.console.print(
                f"[dry-run] Would create GitLab release {request.title} for {request.tag_name}"
            )
            return Ok(None)

        project_id = urllib.parse.quote(project.path, safe="")
        url = f"{project.api_base}/projects/{project_id}/releases"
        payload = {
            "tag_name": request.tag_name,
            "name": request.title or request.tag_name,
            "description": request.body,
        }
        result = self.http.post_json(url, payload, {"PRIVATE-TOKEN": token})
        if isinstance(result, Err):
            e = result.error
            return Err(ReleaseError(kind="publication", message=f"GitLab API {e.status}: {e.message}"))

        self.console.success("GitLab release created.")
        links = get_table(result.value, "_links") or {}
        release_url = get_str(links, "self")
        if release_url is None and project.host == "gitlab.com":
            release_url = f"https://gitlab.com/{project.path}/-/releases/{request.tag_name}"
        return Ok(release_url)
