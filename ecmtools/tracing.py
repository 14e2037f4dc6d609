"""Trace spans for an RKE2 release and their export as Grafana JSON."""

from __future__ import annotations

import json
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import IO, Any

from .events import Build, Pull, RKE2Release, latest

__all__ = [
    "Span",
    "Tracer",
    "GrafanaJsonTraceExporter",
    "trace_build",
    "trace_release",
    "rke2_pkg_builds_by_build",
    "rke2_builds_by_pull_request",
    "rke2_builds_by_release",
    "k8s_builds_by_release",
]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NO_PARENT = "0" * 16
DEFAULT_SERVICE = "ecm-distro-tools"


def _from_unix(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, timezone.utc)


def _unix_nano(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(microseconds=1) * 1000


@dataclass(eq=False)
class Span:
    """A timed operation within a trace."""

    name: str
    trace_id: str
    span_id: str
    parent_span_id: str
    start_time: datetime
    attributes: dict[str, Any] = field(default_factory=dict)
    kind: str = "internal"
    end_time: datetime | None = None
    tracer: "Tracer | None" = field(default=None, repr=False)

    def end(self, timestamp: datetime | None = None) -> None:
        """Finish the span; later calls have no effect."""
        if self.end_time is not None:
            return
        self.end_time = timestamp or datetime.now(timezone.utc)
        if self.tracer is not None:
            self.tracer.finished.append(self)


class Tracer:
    """Creates spans and keeps the finished ones in the order they ended."""

    def __init__(self) -> None:
        self.finished: list[Span] = []

    def start(
        self,
        name: str,
        parent: Span | None = None,
        start: datetime | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> Span:
        return Span(
            name=name,
            trace_id=parent.trace_id if parent else secrets.token_hex(16),
            span_id=secrets.token_hex(8),
            parent_span_id=parent.span_id if parent else _NO_PARENT,
            start_time=start or datetime.now(timezone.utc),
            attributes=dict(attributes or {}),
            tracer=self,
        )


class GrafanaJsonTraceExporter:
    """Writes spans as one line of Grafana-compatible trace JSON."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    @staticmethod
    def _batch(span: Span) -> dict:
        # only string attributes carry a string value; others export as ""
        attributes = [
            {"key": key, "value": {"stringValue": value if isinstance(value, str) else ""}}
            for key, value in span.attributes.items()
        ]
        service = DEFAULT_SERVICE
        for attr in attributes:
            if attr["key"] == "service":
                service = attr["value"]["stringValue"]
        end = span.end_time or span.start_time
        return {
            "resource": {
                "attributes": [{"key": "service.name", "value": {"stringValue": service}}]
            },
            "instrumentationLibrarySpans": [
                {
                    "spans": [
                        {
                            "traceId": span.trace_id,
                            "spanId": span.span_id,
                            "parentSpanId": span.parent_span_id,
                            "name": span.name,
                            "kind": span.kind,
                            "startTimeUnixNano": str(_unix_nano(span.start_time)),
                            "endTimeUnixNano": str(_unix_nano(end)),
                            "attributes": attributes,
                        }
                    ]
                }
            ],
        }

    def export_spans(self, spans) -> None:
        """Write the spans, each as its own batch so it keeps its service name."""
        with self._lock:
            batches = [self._batch(span) for span in spans]
            text = json.dumps({"batches": batches}, separators=(",", ":"), ensure_ascii=False)
            self._stream.write(text + "\n")


def trace_build(build: Build, tracer: Tracer, parent: Span | None) -> Span:
    """Record a span covering a Drone build."""
    span = tracer.start(
        f"{build.status} build {build.owner}/{build.repo} {build.number}",
        parent,
        _from_unix(build.started),
        {
            "service": "drone",
            "drone_id": build.id,
            "drone_number": build.number,
            "drone_status": build.status,
            "ref": build.ref,
            "event": build.event,
            "source": build.source,
            "link": build.link,
            "drone_action": build.action,
        },
    )
    span.end(_from_unix(build.finished))
    return span


def rke2_pkg_builds_by_build(build: Build, pkg_builds) -> list[Build]:
    """Return the packaging builds whose ref contains the ref of build."""
    if build.owner != "rancher" or build.repo != "rke2-packaging":
        return []
    return [pkg for pkg in pkg_builds if build.ref in pkg.ref]


def rke2_builds_by_pull_request(builds, pr: Pull) -> list[Build]:
    """Return the rancher/rke2 builds triggered by a pull request or its commits."""
    number = pr.pull["number"]
    result = []
    for b in builds:
        if b.owner != "rancher" or b.repo != "rke2":
            continue
        if b.event == "pull_request" and b.ref == f"refs/pull/{number}/head":
            result.append(b)
            continue
        if b.event == "push":
            if b.after == pr.pull.get("merge_commit_sha"):
                result.append(b)
                continue
            if pr.has_commit(b.after):
                result.append(b)
                break
    return result


def rke2_builds_by_release(builds, tag_name: str) -> list[Build]:
    """Return the rancher/rke2 tag builds for exactly this tag."""
    return [
        b for b in builds
        if b.owner == "rancher" and b.repo == "rke2"
        and b.event == "tag" and b.ref == "refs/tags/" + tag_name
    ]


def k8s_builds_by_release(builds, tag_name: str) -> list[Build]:
    """Return the rancher/image-build-kubernetes tag builds for this tag."""
    return [
        b for b in builds
        if b.owner == "rancher" and b.repo == "image-build-kubernetes"
        and b.event == "tag" and "refs/tags/" + tag_name in b.ref
    ]


def trace_release(release: RKE2Release, tracer: Tracer) -> Span:
    """Record spans for a release, its candidates, pull requests and builds."""
    k8s, ga = release.k8s, release.ga
    root = tracer.start(
        release.version,
        None,
        k8s["published_at"],
        {
            "service": "github",
            "repo": "rancher/rke2",
            "event": "pull_request",
            "ref": "/refs/tags/" + ga["tag_name"],
            "tag": release.version,
            "link": ga["html_url"],
        },
    )
    root.end(ga["published_at"])

    for b in k8s_builds_by_release(release.builds, k8s["tag_name"]):
        trace_build(b, tracer, root)

    for b in rke2_builds_by_release(release.builds, ga["tag_name"]):
        build_span = trace_build(b, tracer, root)
        for pkg in rke2_pkg_builds_by_build(b, release.builds):
            trace_build(pkg, tracer, build_span)

    for rc in release.rcs:
        release_end = rc["created_at"] + timedelta(minutes=1)
        rc_span = tracer.start(
            rc["tag_name"],
            root,
            rc["published_at"],
            {"service": "github", "event": "release", "repo": "rancher/rke2", "tag": rc["tag_name"]},
        )
        for b in rke2_builds_by_release(release.builds, rc["tag_name"]):
            trace_build(b, tracer, rc_span)
            release_end = latest(release_end, _from_unix(b.finished))
        rc_span.end(release_end)

    for pr in release.prs:
        pull = pr.pull
        pull_end = pull["merged_at"]
        pr_span = tracer.start(
            f"#{pull['number']}",
            root,
            pull["created_at"],
            {
                "service": "github",
                "event": "pull_request",
                "repo": "rancher/rke2",
                "ref": pull["base"]["ref"],
                "link": pull["html_url"],
            },
        )
        for b in rke2_builds_by_pull_request(release.builds, pr):
            trace_build(b, tracer, pr_span)
            pull_end = latest(pull_end, _from_unix(b.finished))
        pr_span.end(pull_end)

    return root