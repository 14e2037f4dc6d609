"""Release configuration: loading, validation, example and view."""

from __future__ import annotations

import json
import os
import re
import subprocess
import sys
from dataclasses import dataclass, field, fields
from typing import IO, Any

__all__ = [
    "ConfigValidationError",
    "VersionNotFoundError",
    "K3sRelease",
    "RancherRelease",
    "UIRelease",
    "DashboardRelease",
    "CLIRelease",
    "RKE2",
    "ChartsRelease",
    "User",
    "K3s",
    "Rancher",
    "Dashboard",
    "CLI",
    "Auth",
    "Config",
    "config_from_dict",
    "load",
    "read",
    "example_config",
    "render_view",
    "view",
    "text_editor_name",
    "open_on_editor",
]


class ConfigValidationError(ValueError):
    """Raised when a configuration fails validation."""


class VersionNotFoundError(LookupError):
    """Raised when a version is missing from the configuration."""

    def __init__(self, version: str) -> None:
        super().__init__(version)
        self.version = version

    def __str__(self) -> str:
        return "verify your config file, version not found: " + self.version


# Marks a field whose JSON key is its own attribute name.
_SAME = object()


def _s(key: Any = _SAME, *rules: str) -> Any:
    return field(default="", metadata={"json": key, "kind": "str", "rules": rules})


def _b(key: Any = _SAME) -> Any:
    return field(default=False, metadata={"json": key, "kind": "bool", "rules": ()})


def _list(key: Any = _SAME, *rules: str) -> Any:
    return field(default=None, metadata={"json": key, "kind": "list", "rules": rules})


def _map(key: Any, item: type) -> Any:
    return field(default=None, metadata={"json": key, "kind": "map", "item": item, "rules": ()})


def _obj(key: Any, item: type) -> Any:
    return field(default=None, metadata={"json": key, "kind": "obj", "item": item, "rules": ()})


def _json_key(f: Any) -> str | None:
    key = f.metadata["json"]
    return f.name if key is _SAME else key


@dataclass
class K3sRelease:
    old_k8s_version: str = _s("old_k8s_version", "required")
    new_k8s_version: str = _s("new_k8s_version", "required")
    old_k8s_client: str = _s("old_k8s_client", "required")
    new_k8s_client: str = _s("new_k8s_client", "required")
    old_suffix: str = _s("old_suffix", "required", "startswith=k3s")
    new_suffix: str = _s("new_suffix", "required", "startswith=k3s")
    release_branch: str = _s("release_branch", "required")
    workspace: str = _s("workspace", "required", "dirpath")
    new_go_version: str = _s(None)
    k3s_repo_owner: str = _s("k3s_repo_owner", "required")
    system_agent_installer_repo_owner: str = _s("system_agent_installer_repo_owner", "required")
    k8s_rancher_url: str = _s("k8s_rancher_url", "required")
    k3s_upstream_url: str = _s("k3s_upstream_url", "required")
    dry_run: bool = _b("dry_run")


@dataclass
class RancherRelease:
    release_branch: str = _s("release_branch", "required")
    rancher_repo_owner: str = _s("rancher_repo_owner", "required")


@dataclass
class UIRelease:
    ui_repo_owner: str = _s("ui_repo_owner", "required")
    ui_repo_name: str = _s("ui_repo_name")
    previous_tag: str = _s("previous_tag")
    release_branch: str = _s("release_branch", "required")
    dry_run: bool = _b("dry_run")


@dataclass
class DashboardRelease:
    previous_tag: str = _s("previous_tag", "required")
    release_branch: str = _s("release_branch", "required")
    ui_release_branch: str = _s("ui_release_branch", "required")
    ui_previous_tag: str = _s("ui_previous_tag", "required")
    tag: str = _s("Tag")
    rancher_release_branch: str = _s("rancher_release_branch", "required")
    rancher_upstream_url: str = _s("RancherUpstreamURL")
    dry_run: bool = _b("dry_run")


@dataclass
class CLIRelease:
    previous_tag: str = _s("previous_tag", "required")
    release_branch: str = _s("release_branch", "required")
    tag: str = _s(None)
    cli_upstream_url: str = _s(None)
    rancher_release_branch: str = _s("rancher_release_branch", "required")
    rancher_upstream_url: str = _s("rancher_upstream_url")
    rancher_commit_sha: str = _s(None)
    rancher_tag: str = _s(None)
    dry_run: bool = _b("dry_run")


@dataclass
class RKE2:
    versions: list | None = _list("versions")


@dataclass
class ChartsRelease:
    workspace: str = _s("workspace", "required", "dirpath")
    charts_repo_url: str = _s("charts_repo_url", "required")
    charts_fork_url: str = _s("charts_fork_url", "required")
    branch_lines: list | None = _list("branch_lines", "required")


@dataclass
class User:
    email: str = _s("email", "required", "email")
    github_username: str = _s("github_username", "required")


@dataclass
class K3s:
    versions: dict | None = _map("versions", K3sRelease)


@dataclass
class Rancher:
    versions: dict | None = _map("versions", RancherRelease)


@dataclass
class Dashboard:
    versions: dict | None = _map("versions", DashboardRelease)
    repo_owner: str = _s("repo_owner", "required")
    repo_name: str = _s("repo_name", "required")
    ui_repo_owner: str = _s("ui_repo_owner", "required")
    ui_repo_name: str = _s("ui_repo_name", "required")
    rancher_repo_owner: str = _s("rancher_repo_owner", "required")
    rancher_repo_name: str = _s("rancher_repo_name", "required")
    rancher_upstream_url: str = _s("rancher_upstream_url", "required")


@dataclass
class CLI:
    versions: dict | None = _map("versions", CLIRelease)
    repo_owner: str = _s("repo_owner", "required")
    repo_name: str = _s("repo_name", "required")
    rancher_repo_owner: str = _s("rancher_repo_owner", "required")
    rancher_repo_name: str = _s("rancher_repo_name", "required")
    rancher_upstream_url: str = _s("rancher_upstream_url", "required")


@dataclass
class Auth:
    github_token: str = _s()
    ssh_key_path: str = _s(_SAME, "filepath")
    aws_access_key_id: str = _s()
    aws_secret_access_key: str = _s()
    aws_session_token: str = _s()
    aws_default_region: str = _s()


_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _rule_ok(rule: str, value: Any, kind: str) -> bool:
    if rule == "required":
        return value is not None if kind == "list" else bool(value)
    if rule.startswith("startswith="):
        return value.startswith(rule.split("=", 1)[1])
    if rule == "email":
        return bool(_EMAIL.match(value))
    if rule == "dirpath":
        if not value or "\x00" in value:
            return False
        if os.path.exists(value):
            return os.path.isdir(value)
        return value.endswith(os.sep)
    if rule == "filepath":
        if not value or "\x00" in value:
            return False
        if os.path.exists(value):
            return not os.path.isdir(value)
        return not value.endswith(os.sep)
    raise ValueError(f"unknown validation rule {rule}")


def _validate(obj: Any, path: str, errors: list[str]) -> None:
    for f in fields(obj):
        value = getattr(obj, f.name)
        kind = f.metadata["kind"]
        where = f"{path}.{f.name}"
        for rule in f.metadata["rules"]:
            if not _rule_ok(rule, value, kind):
                tag = rule.split("=", 1)[0]
                errors.append(f"Key: '{where}' Error:Field validation for '{f.name}' failed on the '{tag}' tag")
                break
        if kind == "obj" and value is not None:
            _validate(value, where, errors)
        elif kind == "map" and value:
            for key, item in value.items():
                _validate(item, f"{where}[{key}]", errors)


def _to_dict(obj: Any) -> dict:
    out: dict[str, Any] = {}
    for f in fields(obj):
        key = _json_key(f)
        if key is None:
            continue
        value = getattr(obj, f.name)
        kind = f.metadata["kind"]
        if kind == "obj":
            value = None if value is None else _to_dict(value)
        elif kind == "map":
            value = None if value is None else {k: _to_dict(value[k]) for k in sorted(value)}
        elif kind == "list":
            value = None if value is None else list(value)
        out[key] = value
    return out


def _from_dict(cls: type, data: Any) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"cannot decode {type(data).__name__} into {cls.__name__}")
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        key = _json_key(f)
        if key is None or key not in data or data[key] is None:
            continue
        value = data[key]
        kind = f.metadata["kind"]
        if kind == "str" and not isinstance(value, str):
            raise ValueError(f"field {key} must be a string")
        if kind == "bool" and not isinstance(value, bool):
            raise ValueError(f"field {key} must be a boolean")
        if kind == "list":
            if not isinstance(value, list):
                raise ValueError(f"field {key} must be a list")
            value = list(value)
        elif kind == "map":
            if not isinstance(value, dict):
                raise ValueError(f"field {key} must be an object")
            value = {k: _from_dict(f.metadata["item"], v) for k, v in value.items()}
        elif kind == "obj":
            value = _from_dict(f.metadata["item"], value)
        kwargs[f.name] = value
    return cls(**kwargs)


@dataclass
class Config:
    user: User | None = _obj("user", User)
    k3s: K3s | None = _obj("k3s", K3s)
    rancher: Rancher | None = _obj("rancher", Rancher)
    rke2: RKE2 | None = _obj("rke2", RKE2)
    charts: ChartsRelease | None = _obj("charts", ChartsRelease)
    auth: Auth | None = _obj("auth", Auth)
    dashboard: Dashboard | None = _obj("dashboard", Dashboard)
    cli: CLI | None = _obj("cli", CLI)
    prime_registry: str = _s("prime_registry")

    def validate(self) -> None:
        """Raise ConfigValidationError listing every failed rule."""
        errors: list[str] = []
        _validate(self, "Config", errors)
        if errors:
            raise ConfigValidationError("\n".join(errors))

    def to_dict(self) -> dict:
        return _to_dict(self)


def config_from_dict(data: Any) -> Config:
    """Build a Config from decoded JSON data."""
    return _from_dict(Config, data)


def read(stream: IO[str]) -> Config:
    """Read a JSON config from a text stream."""
    return config_from_dict(json.load(stream))


def load(config_file: str | os.PathLike) -> Config:
    """Read the JSON config stored at config_file."""
    with open(config_file, encoding="utf-8") as f:
        return read(f)


def example_config() -> str:
    """Return a valid example config as indented JSON."""
    gopath = os.environ.get("GOPATH", "")
    conf = Config(
        user=User(email="user@example.com", github_username="your-github-username"),
        k3s=K3s(versions={
            "v1.x.y": K3sRelease(
                old_k8s_version="v1.x.z",
                new_k8s_version="v1.x.y",
                old_k8s_client="v0.x.z",
                new_k8s_client="v0.x.y",
                old_suffix="k3s1",
                new_suffix="k3s1",
                release_branch="release-1.x",
                dry_run=False,
                workspace=os.path.join(gopath, "src", "github.com", "k3s-io", "kubernetes", "v1.x.z") + "/",
                system_agent_installer_repo_owner="rancher",
                k3s_repo_owner="k3s-io",
                k8s_rancher_url="https://github.com/k3s-io/kubernetes.git",
                k3s_upstream_url="https://github.com/k3s-io/k3s.git",
            )
        }),
        rke2=RKE2(versions=["v1.x.y"]),
        rancher=Rancher(versions={
            "v2.x.y": RancherRelease(release_branch="release/v2.x", rancher_repo_owner="rancher")
        }),
        dashboard=Dashboard(
            repo_name="dashboard",
            repo_owner="rancher",
            ui_repo_name="ui",
            ui_repo_owner="rancher",
            rancher_repo_name="rancher",
            rancher_repo_owner="rancher",
            rancher_upstream_url="https://github.com/rancher/rancher.git",
            versions={
                "v2.x.y": DashboardRelease(
                    previous_tag="v2.x.y",
                    ui_previous_tag="v2.x.y",
                    release_branch="release-v2.x",
                    ui_release_branch="release-v2.x",
                    rancher_release_branch="release/v2.x",
                )
            },
        ),
        charts=ChartsRelease(
            workspace=os.path.join(gopath, "src", "github.com", "rancher", "charts") + "/",
            charts_repo_url="https://github.com/rancher/charts",
            charts_fork_url="https://github.com/your-github-username/charts",
            branch_lines=["2.10", "2.9", "2.8"],
        ),
        auth=Auth(
            github_token="token",
            ssh_key_path="path/to/your/ssh/key",
            aws_access_key_id="placeholder",
            aws_secret_access_key="secret",
            aws_session_token="token",
            aws_default_region="us-east-1",
        ),
        prime_registry="example.com",
    )
    return json.dumps(conf.to_dict(), indent=2)


def render_view(config: Config) -> str:
    """Return a simplified human readable view of the config."""
    for name in ("user", "k3s", "rancher", "rke2", "charts"):
        if getattr(config, name) is None:
            raise ValueError(f"nil pointer evaluating config.{name}")
    user, charts = config.user, config.charts
    parts = [
        "Release config\n\nUser\n",
        f"\tEmail:           {user.email}\n",
        f"\tGithub Username: {user.github_username}\n\nK3s ",
    ]
    k3s_versions = config.k3s.versions or {}
    for version in sorted(k3s_versions):
        r = k3s_versions[version]
        dry_run = "true" if r.dry_run else "false"
        parts.append(
            f"\n\t{version}:\n"
            f"\t\tOld K8s Version:  {r.old_k8s_version}\n"
            f"\t\tNew K8s Version:  {r.new_k8s_version}\n"
            f"\t\tOld K8s Client:   {r.old_k8s_client}\n"
            f"\t\tNew K8s Client:   {r.new_k8s_client}\n"
            f"\t\tOld Suffix:       {r.old_suffix}\n"
            f"\t\tNew Suffix:       {r.new_suffix}\n"
            f"\t\tRelease Branch:   {r.release_branch}\n"
            f"\t\tDry Run:          {dry_run}\n"
            f"\t\tK3s Repo Owner:   {r.k3s_repo_owner}\n"
            f"\t\tK8s Rancher URL:  {r.k8s_rancher_url}\n"
            f"\t\tWorkspace:        {r.workspace}\n"
            f"\t\tK3s Upstream URL: {r.k3s_upstream_url}"
        )
    parts.append("\n\nRancher ")
    rancher_versions = config.rancher.versions or {}
    for version in sorted(rancher_versions):
        r = rancher_versions[version]
        parts.append(
            f"\n\t{version}:\n"
            f"\t\tRelease Branch:     {r.release_branch}\n"
            f"\t\tRancher Repo Owner: {r.rancher_repo_owner}"
        )
    parts.append("\n\nRKE2")
    for version in config.rke2.versions or []:
        parts.append(f"\n\t{version}")
    branch_lines = "[" + " ".join(charts.branch_lines or []) + "]"
    parts.append(
        "\n\nCharts\n"
        f"    Workspace:     {charts.workspace}\n"
        f"    ChartsRepoURL: {charts.charts_repo_url}\n"
        f"    ChartsForkURL: {charts.charts_fork_url}\n"
        f"    BranchLines:     {branch_lines}\n"
    )
    return "".join(parts)


def view(config: Config, stream: IO[str] | None = None) -> None:
    """Write the simplified config view to stream (stdout by default)."""
    (stream or sys.stdout).write(render_view(config))


def text_editor_name() -> str:
    """Return the user's editor from $EDITOR, defaulting to vi."""
    return os.environ.get("EDITOR") or "vi"


def open_on_editor(config_file: str) -> None:
    """Open config_file in the user's editor and wait for it to exit."""
    subprocess.run([text_editor_name(), config_file], check=True)