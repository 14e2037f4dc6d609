"""Collect the GitHub and Drone events that make up an RKE2 release."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from .versions import build, canonical, is_valid, prerelease

__all__ = [
    "DRONE_PR_URL",
    "DRONE_PUBLISH_URL",
    "ReleaseReportError",
    "BuildLister",
    "Pull",
    "Build",
    "RKE2Release",
    "ReleaseClient",
    "build_list",
    "latest",
    "patch",
    "main_patch",
]

log = logging.getLogger(__name__)

DRONE_PR_URL = "drone-pr.rancher.io"
DRONE_PUBLISH_URL = "drone-publish.rancher.io"


class ReleaseReportError(RuntimeError):
    """Raised when release data cannot be collected."""


class BuildLister(Protocol):
    def build_list(self, owner: str, repo: str, page: int) -> list[dict]:
        """Return one page of Drone builds as decoded JSON objects."""


def _from_unix(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, timezone.utc)


@dataclass
class Pull:
    """A merged pull request and its commits.

    ``pull`` is a GitHub pull request object with datetime values for
    ``created_at`` and ``merged_at``; ``commits`` holds objects with a ``sha``.
    """

    pull: dict
    commits: list[dict] = field(default_factory=list)

    def has_commit(self, sha: str) -> bool:
        return any(commit.get("sha") == sha for commit in self.commits)


@dataclass
class Build:
    """A Drone build together with the server and repository it ran for."""

    url: str
    owner: str
    repo: str
    id: int = 0
    number: int = 0
    status: str = ""
    event: str = ""
    action: str = ""
    ref: str = ""
    source: str = ""
    after: str = ""
    link: str = ""
    created: int = 0
    started: int = 0
    finished: int = 0

    @classmethod
    def from_drone(cls, url: str, owner: str, repo: str, data: dict) -> "Build":
        own = {"url", "owner", "repo"}
        values = {f.name: data[f.name] for f in fields(cls) if f.name not in own and f.name in data}
        return cls(url, owner, repo, **values)


@dataclass
class RKE2Release:
    """Everything that happened between a Kubernetes release and an RKE2 GA release."""

    version: str
    branch: str
    k8s: dict | None = None
    ga: dict | None = None
    rcs: list[dict] = field(default_factory=list)
    prs: list[Pull] = field(default_factory=list)
    builds: list[Build] = field(default_factory=list)


def build_list(lister: BuildLister, owner: str, repo: str, start: datetime, end: datetime) -> list[dict]:
    """Return the Drone builds that finished after start and were created before end."""
    builds: list[dict] = []
    cutoff = start - timedelta(hours=24)
    page = 1
    while True:
        try:
            page_builds = lister.build_list(owner, repo, page)
        except Exception:
            log.error("failed to get Drone publish list")
            raise
        if not page_builds:
            break
        for item in page_builds:
            created = _from_unix(item.get("created", 0))
            finished = _from_unix(item.get("finished", 0))
            if finished > start and created < end:
                builds.append(item)
        # stop once the page reaches builds older than the release
        if _from_unix(page_builds[-1].get("finished", 0)) < cutoff:
            break
        page += 1
    return builds


def latest(*times: datetime) -> datetime | None:
    """Return the greatest of the given times, or None if none are given."""
    return max(times, default=None)


def patch(v: str) -> str:
    """Return the patch version of v, e.g. "v1.21.1-rc1+rke2r1" -> "v1.21.1"."""
    full = canonical(v)
    pre = prerelease(v)
    return full[: len(full) - len(pre)]


def main_patch(v: str) -> str:
    """Return v without its prerelease, e.g. "v1.21.1-rc1+rke2r1" -> "v1.21.1+rke2r1"."""
    return patch(v) + build(v)


class ReleaseClient:
    """Gathers release data from GitHub and two Drone servers.

    ``repositories`` provides ``get_release_by_tag(owner, repo, tag)`` and
    ``list_releases(owner, repo, page) -> (releases, next_page)``;
    ``pull_requests`` provides ``list(owner, repo, *, page, state, base, sort,
    direction) -> (pulls, next_page)`` and ``list_commits(owner, repo, number,
    page) -> (commits, next_page)``. A next page of 0 means there is none.
    """

    def __init__(self, repositories: Any, pull_requests: Any, drone_pr: BuildLister, drone_pub: BuildLister) -> None:
        self.repositories = repositories
        self.pull_requests = pull_requests
        self.drone_pr = drone_pr
        self.drone_pub = drone_pub

    def build_list(self, owner: str, repo: str, start: datetime, end: datetime) -> list[Build]:
        """Return builds from both Drone servers within the time range."""
        pr_builds = build_list(self.drone_pr, owner, repo, start, end)
        pub_builds = build_list(self.drone_pub, owner, repo, start, end)
        return [Build.from_drone(DRONE_PR_URL, owner, repo, b) for b in pr_builds] + [
            Build.from_drone(DRONE_PUBLISH_URL, owner, repo, b) for b in pub_builds
        ]

    def _release(self, owner: str, repo: str, tag: str, what: str) -> dict:
        try:
            return self.repositories.get_release_by_tag(owner, repo, tag)
        except Exception as err:
            log.error("failed to get %s release: %s", what, err)
            raise ReleaseReportError(f"Failed to get {what} release {tag}") from err

    def get_rke2_release(self, version: str, branch: str) -> RKE2Release:
        """Collect the releases, pull requests and builds of an RKE2 version."""
        release = RKE2Release(version, branch)
        if not is_valid(version):
            raise ValueError("invalid version")

        k8s = self._release("kubernetes", "kubernetes", patch(version), "Kubernetes")
        release.k8s = k8s
        ga = self._release("rancher", "rke2", version, "RKE2")
        release.ga = ga

        page = 1
        while True:
            try:
                releases, next_page = self.repositories.list_releases("rancher", "rke2", page)
            except Exception as err:
                log.error("failed to get RKE2 releases: %s", err)
                raise ReleaseReportError("Failed to get RKE2 releases " + version) from err
            release.rcs.extend(
                r for r in releases if main_patch(r["tag_name"]) == version and r.get("prerelease")
            )
            if not next_page:
                break
            page += 1

        # pull requests merged between the Kubernetes release and the RKE2 release
        page = 1
        while True:
            pulls, next_page = self.pull_requests.list(
                "rancher", "rke2", page=page, state="closed", base=branch, sort="created", direction="desc"
            )
            found = False
            for pr in pulls:
                if pr.get("merged_at") is None:
                    continue
                if pr["created_at"] > k8s["published_at"] and pr["merged_at"] < ga["published_at"]:
                    release.prs.append(Pull(pr))
                    found = True
            if not found or not next_page:
                break
            page = next_page

        for pr in release.prs:
            page = 1
            while True:
                commits, next_page = self.pull_requests.list_commits("rancher", "rke2", pr.pull["number"], page)
                pr.commits.extend(commits)
                if not next_page:
                    break
                page = next_page

        start = k8s["published_at"]
        end = ga["published_at"] + timedelta(hours=24)
        release.builds.extend(self.build_list("rancher", "rke2", start, end))
        release.builds.extend(self.build_list("rancher", "rke2", start, end + timedelta(hours=1)))
        release.builds.extend(self.build_list("rancher", "rke2-packaging", start, end))
        release.builds.extend(self.build_list("rancher", "image-build-kubernetes", start, end))
        return release