"""Reports on release images across the open-source and prime registries."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import groupby

__all__ = [
    "Platform",
    "RegistryImage",
    "ImageResult",
    "LINUX_AMD64",
    "LINUX_ARM64",
    "format_image_ref",
    "arch_status",
    "windows_status",
    "format_table",
    "format_csv",
]

_DOCKER_HUB = {"docker.io", "index.docker.io"}


@dataclass(frozen=True)
class Platform:
    os: str
    architecture: str


LINUX_AMD64 = Platform("linux", "amd64")
LINUX_ARM64 = Platform("linux", "arm64")


@dataclass
class RegistryImage:
    exists: bool = False
    platforms: set[Platform] = field(default_factory=set)


@dataclass
class ImageResult:
    reference: str
    oss_image: RegistryImage = field(default_factory=RegistryImage)
    prime_image: RegistryImage = field(default_factory=RegistryImage)
    expects_linux_amd64: bool = False
    expects_linux_arm64: bool = False
    expects_windows: bool = False


def format_image_ref(reference: str) -> str:
    """Return "repository:identifier" for an image reference, without registry."""
    name, at, digest = reference.partition("@")
    slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > slash:
        name, identifier = name[:colon], name[colon + 1:]
    else:
        identifier = "latest"
    if at:
        identifier = digest
    first, sep, rest = name.partition("/")
    registry = "docker.io"
    if sep and ("." in first or ":" in first or first == "localhost"):
        registry, name = first, rest
    if registry in _DOCKER_HUB and "/" not in name:
        name = "library/" + name
    return f"{name}:{identifier}"


def arch_status(expected: bool, oss: RegistryImage, prime: RegistryImage, platform: Platform) -> str:
    if not expected:
        return "-"
    return "✓" if platform in oss.platforms and platform in prime.platforms else "✗"


def windows_status(expected: bool, exists: bool) -> str:
    if not expected:
        return "-"
    return "✓" if exists else "✗"


def _sorted(results) -> list[ImageResult]:
    return sorted(results, key=lambda r: format_image_ref(r.reference))


def _tabulate(lines: list[str], padding: int = 2) -> str:
    """Align tab-terminated cells into columns, block by block."""
    rows = [line.split("\t") for line in lines]
    widths = [[0] * (len(row) - 1) for row in rows]
    columns = max((len(row) - 1 for row in rows), default=0)
    for col in range(columns):
        blocks = groupby(zip(rows, widths), key=lambda rw, c=col: len(rw[0]) - 1 > c)
        for has_cell, block in blocks:
            if not has_cell:
                continue
            block = list(block)
            width = max(len(row[col]) for row, _ in block) + padding
            for _, row_widths in block:
                row_widths[col] = width
    return "".join(
        "".join(cell.ljust(w) for cell, w in zip(row[:-1], row_widths)) + row[-1] + "\n"
        for row, row_widths in zip(rows, widths)
    )


def format_table(results) -> str:
    """Render results as an aligned table preceded by a summary line."""
    results = _sorted(results)
    missing = sum(1 for r in results if not r.oss_image.exists or not r.prime_image.exists)
    summary = f"{missing} incomplete images\n" if missing else "all images OK\n"
    lines = [
        "image\toss\tprime\tsig\tamd64\tarm64\twin",
        "-----\t---\t-----\t---\t-----\t-----\t-------",
    ]
    for r in results:
        lines.append("\t".join([
            format_image_ref(r.reference),
            "✓" if r.oss_image.exists else "✗",
            "✓" if r.prime_image.exists else "✗",
            "?",  # signatures are not checked
            arch_status(r.expects_linux_amd64, r.oss_image, r.prime_image, LINUX_AMD64),
            arch_status(r.expects_linux_arm64, r.oss_image, r.prime_image, LINUX_ARM64),
            windows_status(r.expects_windows, r.oss_image.exists and r.prime_image.exists),
            "",
        ]))
    return summary + _tabulate(lines)


def _yn(flag: bool) -> str:
    return "Y" if flag else "N"


def format_csv(results) -> str:
    """Render results as CSV with Y/N status columns."""
    out = ["image,oss,prime,sig,amd64,arm64,win\n"]
    for r in _sorted(results):
        oss, prime = r.oss_image, r.prime_image
        amd64 = _yn(LINUX_AMD64 in oss.platforms and LINUX_AMD64 in prime.platforms) if r.expects_linux_amd64 else ""
        arm64 = _yn(LINUX_ARM64 in oss.platforms and LINUX_ARM64 in prime.platforms) if r.expects_linux_arm64 else ""
        win = _yn(oss.exists and prime.exists) if r.expects_windows else ""
        values = [
            format_image_ref(r.reference),
            _yn(oss.exists),
            _yn(prime.exists),
            "?",
            amd64,
            arm64,
            win,
        ]
        out.append(",".join(values) + "\n")
    return "".join(out)