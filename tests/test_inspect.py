import pytest

from ecmtools.inspect import (
    LINUX_AMD64,
    LINUX_ARM64,
    ImageResult,
    Platform,
    RegistryImage,
    arch_status,
    format_csv,
    format_image_ref,
    format_table,
    windows_status,
)

RUNTIME = "rancher/rke2-runtime:v1.23.4-rke2r1"
CLOUD = "rancher/rke2-cloud-provider:v1.23.4-rke2r1"
WINDOWS = "rancher/rke2-runtime-windows:v1.23.4-rke2r1"


def _results():
    both = {LINUX_AMD64, LINUX_ARM64}
    return [
        ImageResult(
            RUNTIME,
            RegistryImage(True, set(both)),
            RegistryImage(True, set(both)),
            expects_linux_amd64=True,
            expects_linux_arm64=True,
        ),
        ImageResult(
            CLOUD,
            RegistryImage(True, {LINUX_AMD64}),
            RegistryImage(False, {LINUX_AMD64}),
            expects_linux_amd64=True,
        ),
        ImageResult(WINDOWS, RegistryImage(), RegistryImage(), expects_windows=True),
    ]


def test_csv_output():
    assert format_csv(_results()) == (
        "image,oss,prime,sig,amd64,arm64,win\n"
        "rancher/rke2-cloud-provider:v1.23.4-rke2r1,Y,N,?,Y,,\n"
        "rancher/rke2-runtime-windows:v1.23.4-rke2r1,N,N,?,,,N\n"
        "rancher/rke2-runtime:v1.23.4-rke2r1,Y,Y,?,Y,Y,\n"
    )


def test_table_empty():
    assert format_table([]) == (
        "all images OK\n"
        "image  oss  prime  sig  amd64  arm64  win\n"
        "-----  ---  -----  ---  -----  -----  -------\n"
    )


def test_table_rows_are_aligned():
    lines = format_table(_results()).splitlines()
    assert lines[0] == "2 incomplete images"
    rows = lines[3:]
    assert [row.split()[0] for row in rows] == [CLOUD, WINDOWS, RUNTIME]
    assert rows[2].split() == [RUNTIME, "✓", "✓", "?", "✓", "✓", "-"]
    assert rows[1].split() == [WINDOWS, "✗", "✗", "?", "-", "-", "✗"]
    starts = {row.index(" ?") for row in rows}
    assert len(starts) == 1


def test_arch_status():
    present = RegistryImage(True, {LINUX_AMD64})
    absent = RegistryImage(True, set())
    assert arch_status(False, present, present, LINUX_AMD64) == "-"
    assert arch_status(True, present, present, LINUX_AMD64) == "✓"
    assert arch_status(True, present, absent, LINUX_AMD64) == "✗"
    assert arch_status(True, present, present, Platform("linux", "arm64")) == "✗"


def test_windows_status():
    assert windows_status(False, True) == "-"
    assert windows_status(True, True) == "✓"
    assert windows_status(True, False) == "✗"


@pytest.mark.parametrize(
    "reference, expected",
    [
        (RUNTIME, RUNTIME),
        ("docker.io/" + RUNTIME, RUNTIME),
        ("registry.example.com/rancher/rke2-runtime:v1", "rancher/rke2-runtime:v1"),
        ("busybox", "library/busybox:latest"),
        ("rancher/rke2-runtime@sha256:abc", "rancher/rke2-runtime:sha256:abc"),
    ],
)
def test_format_image_ref(reference, expected):
    assert format_image_ref(reference) == expected