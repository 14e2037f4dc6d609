"""Command that parses semantic versions and tests them against constraints."""

from __future__ import annotations

import argparse
import html
import json
import re
import sys

import yaml

from .versions import Version, VersionError, parse_constraint, parse_version

_HEADERS = ["Major", "Minor", "Patch", "Prerelease", "Metadata"]
_TEMPLATE_ACTION = re.compile(r"^\{\{-?\s*\.(\w+)\s*-?\}\}$")


def _data(version: Version) -> dict:
    return {
        "major": version.major,
        "minor": version.minor,
        "patch": version.patch,
        "prerelease": version.prerelease,
        "metadata": version.metadata,
    }


def _table(data: dict) -> str:
    values = [str(data[k]) for k in ("major", "minor", "patch", "prerelease")]
    widths = [max(len(h), len(v)) + 2 for h, v in zip(_HEADERS, values)]
    header = "".join(h.ljust(w) for h, w in zip(_HEADERS, widths)) + _HEADERS[4] + "\n"
    metadata = data["metadata"]
    row = "".join(v.ljust(w) for v, w in zip(values, widths)) + metadata + "  " + "\n"
    return header + row


def _yaml_scalar(value) -> str:
    if isinstance(value, int):
        return str(value)
    if value and yaml.safe_load(value) == value:
        return value
    return json.dumps(value)


def _yaml(data: dict) -> str:
    return "".join(f"{key}: {_yaml_scalar(data[key])}\n" for key in sorted(data))


def _template(template: str, data: dict) -> str:
    fields = {
        "Major": data["major"],
        "Minor": data["minor"],
        "Patch": data["patch"],
        "Prerelease": data["prerelease"],
        "Metadata": data["metadata"],
    }
    out = []
    for token in re.split(r"(\{\{.*?\}\})", template):
        if not token.startswith("{{"):
            if "{{" in token:
                raise ValueError("template: unclosed action")
            out.append(token)
            continue
        match = _TEMPLATE_ACTION.match(token)
        if not match:
            raise ValueError(f"template: unsupported action {token}")
        name = match.group(1)
        if name not in fields:
            raise ValueError(f"template: can't evaluate field {name}")
        out.append(html.escape(str(fields[name])))
    return "".join(out)


def format_version(version: Version, fmt: str) -> str:
    """Render a version as table, json, yaml or go-template=... output."""
    data = _data(version)
    if fmt in ("", "table"):
        return _table(data)
    if fmt == "json":
        return json.dumps(data, indent=2)
    if fmt == "yaml":
        return _yaml(data)
    if fmt.startswith("go-template="):
        return _template(fmt[len("go-template="):], data)
    raise ValueError("invalid output format")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="semv")
    parser.add_argument("--version", action="version", version="development")
    sub = parser.add_subparsers(dest="command")
    parse = sub.add_parser("parse", help="parse [version]")
    parse.add_argument(
        "-o", "--output", default="",
        help="Output format (table|json|yaml|name|go-template)",
    )
    parse.add_argument("args", nargs="*")
    test = sub.add_parser("test", help="test [constraint] [version]")
    test.add_argument("args", nargs="*")
    return parser


def main(argv=None) -> int:
    parser = _build_parser()
    ns = parser.parse_args(argv)
    try:
        if ns.command == "parse":
            if len(ns.args) != 1:
                raise ValueError("invalid number of arguments")
            sys.stdout.write(format_version(parse_version(ns.args[0]), ns.output))
            return 0
        if ns.command == "test":
            if len(ns.args) != 2:
                raise ValueError("invalid number of arguments")
            constraint = parse_constraint(ns.args[0])
            version = parse_version(ns.args[1])
            return 0 if constraint.check(version) else 1
    except (ValueError, VersionError) as err:
        print(f"error: {err}", file=sys.stderr)
        return 1
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())