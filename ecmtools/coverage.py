"""Report how many server and agent flags the E2E and integration tests use."""

from __future__ import annotations

import argparse
import logging
import os
import re
import subprocess
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import IO

import yaml
from matplotlib.figure import Figure

__all__ = [
    "TestCoverage",
    "discover_test_files",
    "extract_config_yaml",
    "extract_test_args",
    "total_used",
    "parse_help",
    "extract_help",
    "markdown_table",
    "graph_results",
    "run_coverage",
    "main",
]

log = logging.getLogger(__name__)

_K3S_TYPE = re.compile(r"k3s.args =(?:\s[\"]|\s[\%][w,W][\[])(.*)")
_RKE2_TYPE = re.compile(r"INSTALL_RKE2_TYPE=(.+?)[ |\]]")
_LONG_ARG = re.compile(r"--\S*?=")
_YAML_BLOCK = re.compile(r"YAML([\S\s]*?)YAML", re.MULTILINE)
_SERVER_ARGS = re.compile(r"(?mi)serverargs =.*(?s:\{(.*?)\})")
_QUOTED = re.compile(r'"[^"]*"', re.MULTILINE)
_HELP_FLAG = re.compile(r"--(.*?) ", re.MULTILINE)


@dataclass
class TestCoverage:
    """The flags that one test file passes to servers and agents."""

    __test__ = False

    short_path: str
    server_arguments: set[str] = field(default_factory=set)
    agent_arguments: set[str] = field(default_factory=set)


def _walk(path: str) -> Iterator[str]:
    yield path
    if os.path.isdir(path) and not os.path.islink(path):
        for name in sorted(os.listdir(path)):
            yield from _walk(os.path.join(path, name))


def discover_test_files(program_path: str) -> tuple[list[str], list[str]]:
    """Return the Vagrantfiles and integration test files under program_path/tests."""
    root = os.path.join(program_path, "tests")
    os.stat(root)
    vagrant_files: list[str] = []
    integration_files: list[str] = []
    for path in _walk(root):
        name = os.path.basename(path)
        if name.startswith("Vagrantfile"):
            vagrant_files.append(path)
        if name.endswith("int_test.go"):
            integration_files.append(path)
    return vagrant_files, integration_files


def _short_path(path: str, program_path: str) -> str:
    prefix = program_path + "/tests/"
    return path[len(prefix):] if path.startswith(prefix) else path


def extract_config_yaml(e2e_file: str, program_path: str) -> TestCoverage:
    """Collect the server and agent arguments configured in a Vagrantfile."""
    with open(e2e_file, encoding="utf-8") as f:
        text = f.read()
    type_re = _K3S_TYPE if "k3s" in program_path else _RKE2_TYPE
    type_matches = type_re.findall(text)
    yaml_matches = _YAML_BLOCK.findall(text)
    result = TestCoverage(_short_path(e2e_file, program_path))

    for index, match in enumerate(type_matches):
        config: dict = {}
        if index < len(yaml_matches):
            loaded = yaml.safe_load(yaml_matches[index])
            if loaded is not None and not isinstance(loaded, dict):
                raise ValueError(f"{e2e_file}: YAML block {index} is not a mapping")
            config = loaded or {}
        node_args = match.strip('"]').split(" ")
        role, rest = node_args[0], node_args[1:]
        if role == "server":
            for arg in rest:
                # strip the "--" and "=value" from long arguments
                if _LONG_ARG.search(arg):
                    arg = arg.split("=")[0]
                if arg not in (" ", ""):
                    result.server_arguments.add(arg.removeprefix("--"))
            result.server_arguments.update(str(k) for k in config)
        elif role == "agent":
            result.agent_arguments.update(rest)
            result.agent_arguments.update(str(k) for k in config)
    return result


def extract_test_args(test_file: str, program_path: str) -> TestCoverage:
    """Collect the server arguments listed in an integration test's serverArgs."""
    with open(test_file, encoding="utf-8") as f:
        text = f.read()
    result = TestCoverage(_short_path(test_file, program_path))
    for block in _SERVER_ARGS.findall(text):
        for quoted in _QUOTED.findall(block):
            arg = quoted.strip('"').removeprefix("--")
            result.server_arguments.update(a for a in arg.split(" ") if a)
    return result


def total_used(flags: dict[str, int]) -> int:
    """Count the flags used by at least one test."""
    return sum(1 for count in flags.values() if count > 0)


def parse_help(text: str) -> dict[str, int]:
    """Return the long flags in help text, each with a zero use count."""
    return {match.strip(): 0 for match in _HELP_FLAG.findall(text)}


def extract_help(program: str, role: str) -> dict[str, int]:
    """Run "program role --help" and return its flags with zero use counts."""
    proc = subprocess.run(
        [program, role, "--help"],
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        check=False,
    )
    if proc.returncode != 0:
        raise RuntimeError(f"exec output: {proc.stdout}: exit status {proc.returncode}")
    return parse_help(proc.stdout)


def _rows(flags: list[str], mark: str) -> Iterator[str]:
    for start in range(0, len(flags), 3):
        cells = [f"<ul><li>- [{mark}] {f}</li></ul>" for f in flags[start:start + 3]]
        if len(cells) == 3:
            yield f"| {cells[0]} | {cells[1]} | {cells[2]} |\n"
        elif len(cells) == 2:
            yield f"| {cells[0]} | {cells[1]} | |\n"
        else:
            yield f"| {cells[0]} | | |\n"


def markdown_table(used_flags: list[str], unused_flags: list[str]) -> str:
    """Render used and unused flags as a three-column markdown checkbox table."""
    head = "\n| Server flags: | | | \n| - | - | - |\n"
    return head + "".join(_rows(used_flags, "x")) + "".join(_rows(unused_flags, " "))


def _test_group(short_path: str) -> str:
    for group in ("integration", "install", "e2e"):
        if group in short_path:
            return group
    return ""


def graph_results(
    server_flags: dict[str, int],
    vagrant_coverage: Iterable[TestCoverage],
    int_coverage: Iterable[TestCoverage],
    path: str = "graph.png",
) -> str:
    """Draw a stacked bar chart of flag use per test and save it to path."""
    names = list(server_flags)
    fig = Figure(figsize=(max(8.0, len(names) * 0.4), 6))
    ax = fig.add_subplot()
    bottom = [0] * len(names)
    tests = [*vagrant_coverage, *int_coverage]
    for test in tests:
        hits = [1 if name in test.server_arguments else 0 for name in names]
        group = _test_group(test.short_path)
        label = f"{group}: {test.short_path}" if group else test.short_path
        ax.bar(names, hits, bottom=bottom, label=label)
        bottom = [b + h for b, h in zip(bottom, hits)]
    ax.set_title("Server Argument Coverage")
    ax.set_ylabel("# of Tests Using Flag")
    ax.tick_params(axis="x", labelrotation=60)
    if tests:
        ax.legend(fontsize="small")
    fig.tight_layout()
    fig.savefig(path)
    return path


def _percent(used: int, total: int) -> str:
    return "NaN" if total == 0 else f"{used / total * 100:.2f}"


def _describe(cov: TestCoverage, out: IO[str]) -> None:
    out.write(f"{cov.short_path}  contains:\n")
    out.write(f"server args:  [{' '.join(sorted(cov.server_arguments))}]\n")
    if cov.agent_arguments:
        out.write(f"agent args: [{' '.join(sorted(cov.agent_arguments))}]\n")
    out.write("\n")


def run_coverage(
    path: str,
    verbose: bool = False,
    graph: bool = False,
    table: bool = False,
    list_flags: bool = False,
    out: IO[str] | None = None,
) -> dict[str, int]:
    """Print the flag coverage report for a K3s or RKE2 checkout; return server flag counts."""
    out = out or sys.stdout
    program_path = os.path.normpath(path.lower())
    program = ""
    if "k3s" in program_path:
        program = os.path.join(program_path, "bin", "k3s")
    elif "rke2" in program_path:
        program = os.path.join(program_path, "bin", "rke2")
    if not program or not os.path.exists(program):
        raise FileNotFoundError(f"unable to find binary at {program}")

    e2e_files, int_files = discover_test_files(program_path)
    vagrant_coverage = []
    for e2e_file in e2e_files:
        cov = extract_config_yaml(e2e_file, program_path)
        if verbose:
            _describe(cov, out)
        vagrant_coverage.append(cov)

    int_coverage = []
    for int_file in int_files:
        cov = extract_test_args(int_file, program_path)
        if verbose:
            _describe(cov, out)
        int_coverage.append(cov)

    server_flags = extract_help(program, "server")
    for flag in server_flags:
        for cov in (*vagrant_coverage, *int_coverage):
            if flag in cov.server_arguments:
                server_flags[flag] += 1
    used = total_used(server_flags)
    out.write(
        f"Covering {used} out of {len(server_flags)} "
        f"({_percent(used, len(server_flags))}%) of server flags\n"
    )

    # integration tests have no agent flags, so only Vagrantfiles count here
    agent_flags = extract_help(program, "agent")
    for cov in vagrant_coverage:
        for arg in cov.agent_arguments:
            if arg in agent_flags:
                agent_flags[arg] += 1
    used = total_used(agent_flags)
    out.write(
        f"Covering {used} out of {len(agent_flags)} "
        f"({_percent(used, len(agent_flags))}%) of agent flags\n"
    )

    if graph:
        written = graph_results(server_flags, vagrant_coverage, int_coverage, "graph.png")
        out.write(f"Graph written to: file://{os.path.abspath(written)}\n")

    used_flags = [flag for flag, count in server_flags.items() if count > 0]
    unused_flags = [flag for flag, count in server_flags.items() if count == 0]

    if list_flags:
        out.write("Used flags:\n\n")
        out.writelines(f"{flag}\n" for flag in used_flags)
        out.write("Unused flags:\n\n")
        out.writelines(f"{flag}\n" for flag in unused_flags)

    if table:
        out.write(markdown_table(used_flags, unused_flags))

    return server_flags


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="test-coverage",
        description="Generate coverage report for E2E/Integration tests",
    )
    parser.add_argument("--version", action="version", version="development")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")
    parser.add_argument("-g", "--graph", action="store_true", help="display results as a graph")
    parser.add_argument("-t", "--table", action="store_true", help="display results as a markdown table")
    parser.add_argument("-l", "--list", dest="list_flags", action="store_true", help="display results as a list")
    parser.add_argument("-p", "--path", required=True, help="path to K3s/RKE2 repository")
    return parser


def main(argv=None) -> int:
    ns = _build_parser().parse_args(argv)
    try:
        run_coverage(ns.path, ns.verbose, ns.graph, ns.table, ns.list_flags)
    except (OSError, RuntimeError, ValueError, yaml.YAMLError) as err:
        log.error("%s", err)
        print(f"error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())