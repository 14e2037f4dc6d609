"""Semantic version parsing, comparison and constraint matching."""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field

__all__ = [
    "VersionError",
    "Version",
    "Constraint",
    "parse_version",
    "parse_constraint",
    "is_valid",
    "canonical",
    "prerelease",
    "build",
]


class VersionError(ValueError):
    """Raised when a version or constraint string cannot be parsed."""


_LOOSE_VERSION = re.compile(
    r"^v?([0-9]+)(?:\.([0-9]+))?(?:\.([0-9]+))?"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def _compare_prerelease(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return 1
    if not b:
        return -1
    left, right = a.split("."), b.split(".")
    for x, y in zip(left, right):
        if x == y:
            continue
        x_num, y_num = x.isdigit(), y.isdigit()
        if x_num and y_num:
            return -1 if int(x) < int(y) else 1
        if x_num:
            return -1
        if y_num:
            return 1
        return -1 if x < y else 1
    if len(left) == len(right):
        return 0
    return -1 if len(left) < len(right) else 1


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A parsed semantic version; build metadata does not affect ordering."""

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: str = ""
    metadata: str = ""
    original: str = field(default="", compare=False)

    def compare(self, other: "Version") -> int:
        left = (self.major, self.minor, self.patch)
        right = (other.major, other.minor, other.patch)
        if left != right:
            return -1 if left < right else 1
        return _compare_prerelease(self.prerelease, other.prerelease)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.prerelease))

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + self.prerelease
        if self.metadata:
            text += "+" + self.metadata
        return text


def parse_version(text: str) -> Version:
    """Parse a version, accepting a leading "v" and missing minor/patch parts."""
    match = _LOOSE_VERSION.match(text.strip()) if isinstance(text, str) else None
    if not match:
        raise VersionError(f"invalid semantic version: {text!r}")
    major, minor, patch, pre, meta = match.groups()
    pre = pre or ""
    for ident in filter(None, pre.split(".")):
        if ident.isdigit() and len(ident) > 1 and ident.startswith("0"):
            raise VersionError(f"invalid prerelease string: {pre!r}")
    return Version(
        int(major),
        int(minor or 0),
        int(patch or 0),
        pre,
        meta or "",
        text,
    )


_WILD = {"x", "X", "*"}
_OPS = ("!=", ">=", "=>", "<=", "=<", "~>", ">", "<", "=", "~", "^")
_COMPARATOR = re.compile(
    r"^(!=|>=|=>|<=|=<|~>|>|<|=|~|\^)?\s*"
    r"v?([0-9]+|[xX*])(?:\.([0-9]+|[xX*]))?(?:\.([0-9]+|[xX*]))?"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_PIECE = re.compile(r"(?:!=|>=|=>|<=|=<|~>|>|<|=|~|\^)?\s*[^\s,]+")
_HYPHEN = re.compile(r"(\S+)\s+-\s+(\S+)")


@dataclass(frozen=True)
class _Comparator:
    op: str
    version: Version
    wild: int  # 0 exact, 1 patch wild, 2 minor wild, 3 major wild

    def _prefix(self, v: Version, depth: int) -> tuple[int, ...]:
        return (v.major, v.minor, v.patch)[:depth]

    def check(self, v: Version) -> bool:
        c = self.version
        if v.prerelease and not c.prerelease:
            return False
        w = self.wild
        depth = 3 - w
        vp, cp = self._prefix(v, depth), self._prefix(c, depth)
        op = self.op
        if op in ("", "="):
            return True if w == 3 else (vp == cp if w else v == c)
        if op == "!=":
            return False if w == 3 else (vp != cp if w else v != c)
        if op == ">":
            return False if w == 3 else (vp > cp if w else v > c)
        if op in (">=", "=>"):
            return v >= c
        if op == "<":
            return False if w == 3 else v < c
        if op in ("<=", "=<"):
            return True if w == 3 else (vp <= cp if w else v <= c)
        if op in ("~", "~>"):
            if w == 3:
                return True
            if v < c:
                return False
            if w >= 2:
                return v.major == c.major
            return (v.major, v.minor) == (c.major, c.minor)
        # caret
        if w == 3:
            return True
        if v < c:
            return False
        if c.major > 0:
            return v.major == c.major
        if w == 2:
            return v.major == 0
        if c.minor > 0:
            return v.major == 0 and v.minor == c.minor
        if w == 1:
            return v.major == 0 and v.minor == 0
        return v.major == 0 and v.minor == 0 and v.patch == c.patch


def _parse_comparator(text: str) -> _Comparator:
    match = _COMPARATOR.match(text.strip())
    if not match:
        raise VersionError(f"improper constraint: {text!r}")
    op, major, minor, patch, pre, meta = match.groups()
    parts = [major, minor, patch]
    wild = 0
    for index, part in enumerate(parts):
        if part is None or part in _WILD:
            wild = 3 - index
            break
    numbers = [
        int(p) if p is not None and p not in _WILD and index < 3 - wild else 0
        for index, p in enumerate(parts)
    ]
    version = Version(numbers[0], numbers[1], numbers[2], pre or "", meta or "", text)
    return _Comparator(op or "", version, wild)


class Constraint:
    """A set of version comparators joined by "||" (or) and "," (and)."""

    def __init__(self, groups: list[list[_Comparator]], original: str = "") -> None:
        self._groups = groups
        self.original = original

    def check(self, version: Version) -> bool:
        return any(all(c.check(version) for c in group) for group in self._groups)

    def __str__(self) -> str:
        return self.original


def parse_constraint(text: str) -> Constraint:
    """Parse a constraint expression such as ">=1.2, <2 || ~3.1"."""
    if not isinstance(text, str) or not text.strip():
        raise VersionError(f"improper constraint: {text!r}")
    groups = []
    for part in text.split("||"):
        part = _HYPHEN.sub(r">=\1, <=\2", part.strip())
        pieces = [t for chunk in part.split(",") for t in _PIECE.findall(chunk)]
        if not pieces:
            raise VersionError(f"improper constraint: {text!r}")
        groups.append([_parse_comparator(t) for t in pieces])
    return Constraint(groups, text)


# Strict "v"-prefixed semantic versions.


def _num(s: str, i: int) -> int:
    start = i
    while i < len(s) and s[i].isdigit():
        i += 1
    if i == start or (i - start > 1 and s[start] == "0"):
        return -1
    return i


def _idents(text: str, numeric_check: bool) -> bool:
    for ident in text.split("."):
        if not ident or not re.fullmatch(r"[0-9A-Za-z-]+", ident):
            return False
        if numeric_check and ident.isdigit() and len(ident) > 1 and ident[0] == "0":
            return False
    return True


def _strict_parse(v: str):
    if not isinstance(v, str) or not v.startswith("v"):
        return None
    end = _num(v, 1)
    if end < 0:
        return None
    major = v[1:end]
    if end == len(v):
        return major, "0", "0", "", ""
    if v[end] != ".":
        return None
    start = end + 1
    end = _num(v, start)
    if end < 0:
        return None
    minor = v[start:end]
    if end == len(v):
        return major, minor, "0", "", ""
    if v[end] != ".":
        return None
    start = end + 1
    end = _num(v, start)
    if end < 0:
        return None
    patch = v[start:end]
    rest = v[end:]
    pre = build_part = ""
    if rest.startswith("-"):
        plus = rest.find("+")
        pre = rest if plus < 0 else rest[:plus]
        rest = "" if plus < 0 else rest[plus:]
        if not _idents(pre[1:], True):
            return None
    if rest.startswith("+"):
        build_part = rest
        if not _idents(build_part[1:], False):
            return None
        rest = ""
    if rest:
        return None
    return major, minor, patch, pre, build_part


def is_valid(v: str) -> bool:
    """Report whether v is a valid "v"-prefixed semantic version."""
    return _strict_parse(v) is not None


def canonical(v: str) -> str:
    """Return v as vMAJOR.MINOR.PATCH[-PRERELEASE], or "" if v is invalid."""
    parsed = _strict_parse(v)
    if parsed is None:
        return ""
    major, minor, patch, pre, _ = parsed
    return f"v{major}.{minor}.{patch}{pre}"


def prerelease(v: str) -> str:
    """Return the prerelease suffix of v including the leading "-", or ""."""
    parsed = _strict_parse(v)
    return parsed[3] if parsed else ""


def build(v: str) -> str:
    """Return the build suffix of v including the leading "+", or ""."""
    parsed = _strict_parse(v)
    return parsed[4] if parsed else ""