import pytest

from ecmtools.versions import (
    Constraint,
    Version,
    VersionError,
    build,
    canonical,
    is_valid,
    parse_constraint,
    parse_version,
    prerelease,
)


def test_parse_full_version():
    v = parse_version("v1.21.1-rc1+rke2r1")
    assert (v.major, v.minor, v.patch) == (1, 21, 1)
    assert v.prerelease == "rc1"
    assert v.metadata == "rke2r1"


def test_parse_short_version_fills_zeros():
    assert parse_version("2") == parse_version("2.0.0")


@pytest.mark.parametrize("text", ["", "abc", "1.2.3.4", "1.2.3-01"])
def test_parse_invalid(text):
    with pytest.raises(VersionError):
        parse_version(text)


def test_ordering():
    ordered = ["1.0.0-alpha", "1.0.0-alpha.1", "1.0.0-beta", "1.0.0-rc.1", "1.0.0", "1.0.1", "1.2.0"]
    versions = [parse_version(v) for v in ordered]
    assert sorted(reversed(versions)) == versions


def test_metadata_ignored_in_equality():
    assert parse_version("1.2.3+a") == parse_version("1.2.3+b")


@pytest.mark.parametrize(
    "constraint, version, expected",
    [
        ("v2.9.3", "2.9.3", True),
        ("v2.9.3", "2.9.4", False),
        (">=1.2.3", "1.3.0", True),
        (">=1.2.3, <1.3", "1.3.0", False),
        ("2.9.x", "2.9.7", True),
        ("2.9.x", "2.10.0", False),
        ("~1.2.3", "1.2.9", True),
        ("~1.2.3", "1.3.0", False),
        ("^1.2.3", "1.9.0", True),
        ("^1.2.3", "2.0.0", False),
        ("1.0 - 2.0", "1.5.0", True),
        ("<1.0 || >=3.0", "2.0.0", False),
        ("<1.0 || >=3.0", "3.1.0", True),
        (">=1.0.0", "1.5.0-rc1", False),
        ("*", "9.9.9", True),
    ],
)
def test_constraint_check(constraint, version, expected):
    assert parse_constraint(constraint).check(parse_version(version)) is expected


def test_constraint_invalid():
    with pytest.raises(VersionError):
        parse_constraint("not a version")
    with pytest.raises(VersionError):
        parse_constraint("")


def test_constraint_type():
    assert isinstance(parse_constraint(">1"), Constraint)
    assert str(parse_constraint(">1")) == ">1"


def test_strict_validity():
    assert is_valid("v1.21.1-rc1+rke2r1")
    assert is_valid("v1.2")
    assert not is_valid("1.2.3")
    assert not is_valid("v01.2.3")
    assert not is_valid("v1.2-rc1")


def test_canonical_prerelease_build():
    v = "v1.21.1-rc1+rke2r1"
    assert canonical(v) == "v1.21.1-rc1"
    assert prerelease(v) == "-rc1"
    assert build(v) == "+rke2r1"
    assert canonical(v)[: len(canonical(v)) - len(prerelease(v))] + build(v) == "v1.21.1+rke2r1"


def test_canonical_short_and_invalid():
    assert canonical("v1.2") == "v1.2.0"
    assert canonical("bad") == ""
    assert prerelease("bad") == ""
    assert build("v1.2.3") == ""


def test_str_round_trip():
    v = parse_version("1.2.3-rc.1+meta")
    assert parse_version(str(v)) == v
    assert isinstance(v, Version)