"""Docker Hub tag lookups."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .httpclient import new_client

__all__ = ["REGISTRY_URL", "DockerImage", "DockerTagError", "docker_tag", "check_image_archs"]

log = logging.getLogger(__name__)

REGISTRY_URL = "https://hub.docker.com"

_TIME = re.compile(
    r"^(\d{4})-(\d\d)-(\d\d)T(\d\d):(\d\d):(\d\d)(?:\.(\d+))?(Z|[+-]\d\d:\d\d)$"
)


class DockerTagError(RuntimeError):
    """Raised when a tag cannot be fetched or lacks an architecture."""


@dataclass(frozen=True)
class DockerImage:
    architecture: str = ""
    status: str = ""
    size: int = 0
    last_pushed: datetime | None = None


def _parse_time(text: str | None) -> datetime | None:
    if not text:
        return None
    match = _TIME.match(text)
    if not match:
        raise ValueError(f"invalid timestamp: {text!r}")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


def docker_tag(org: str, repo: str, tag: str, registry_url: str = REGISTRY_URL) -> dict[str, DockerImage]:
    """Return the images of a tag keyed by architecture."""
    url = f"{registry_url}/v2/repositories/{org}/{repo}/tags/{tag}"
    with new_client(15) as client:
        res = client.get(url)
    if res.status_code != 200:
        raise DockerTagError(
            f'failed to find docker tag "{tag}", unexpected status code: {res.status_code}'
        )
    images = {}
    for raw in res.json().get("images") or []:
        image = DockerImage(
            architecture=raw.get("architecture") or "",
            status=raw.get("status") or "",
            size=raw.get("size") or 0,
            last_pushed=_parse_time(raw.get("last_pushed")),
        )
        images[image.architecture] = image
    return images


def check_image_archs(org: str, repo: str, tag: str, archs) -> None:
    """Raise DockerTagError unless the tag exists with every given architecture."""
    images = docker_tag(org, repo, tag)
    for arch in archs:
        log.info("checking %s", arch)
        if arch not in images:
            raise DockerTagError(f"arch {arch} not found")
        log.info("passed, %s exists", arch)