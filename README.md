# ecmtools

Command-line tools and a small library for checking releases of K3s, RKE2,
Rancher and the projects around them: semantic version handling, release
configuration files, Docker Hub tag lookups, image inspection reports, test
flag coverage, and release timelines exported as trace JSON.

## Installation

```
pip install ecmtools
```

To run the test suite:

```
pip install "ecmtools[test]"
pytest
```

## Commands

### semv

Parse semantic versions and test them against constraints.

```
semv parse v1.2.3-rc1+build.5
semv parse -o json v1.2.3
semv parse -o yaml v1.2.3
semv parse -o 'go-template={{.Major}}.{{.Minor}}' v1.2.3
semv test '>= 1.2, < 2' v1.4.0
```

`parse` prints the major, minor and patch numbers with the prerelease and
metadata parts, as a table (the default, also chosen with `-o table`), JSON,
YAML, or through a template whose actions are fields such as `{{.Major}}`.
`test` exits with status 0 when the version satisfies the constraint and 1
when it does not. Invalid input is reported on standard error with exit
status 1.

### test-coverage

```
test-coverage --path ~/src/k3s --list
test-coverage --path ~/src/rke2 --table --graph
```

Compares the flags accepted by the `server` and `agent` commands of a built
K3s or RKE2 binary (`bin/k3s` or `bin/rke2` under the given path) with those
used by the Vagrantfiles and `*int_test.go` files under its `tests`
directory, and reports how many are covered. Options:

- `-l`, `--list` lists used and unused server flags;
- `-t`, `--table` prints them as a Markdown checkbox table;
- `-g`, `--graph` draws a stacked bar chart to `graph.png`;
- `-v`, `--verbose` shows the arguments found in each test file.

## Library use

Versions and constraints (`ecmtools.versions`):

```python
from ecmtools.versions import parse_version, parse_constraint, canonical

version = parse_version("v1.28.3-rc1+rke2r1")
assert parse_constraint(">= 1.28").check(parse_version("1.28.3"))
assert canonical("v1.21.1-rc1+rke2r1") == "v1.21.1-rc1"
```

Release configuration (`ecmtools.config`):

```python
from ecmtools import config

with open("config.json") as f:
    conf = config.read(f)
conf.validate()            # raises ConfigValidationError
config.view(conf)          # prints a simplified view
print(config.example_config())
```

`config.load(path)` reads a file directly, and `config.open_on_editor(path)`
opens it in `$EDITOR` (falling back to `vi`).

Docker Hub tags (`ecmtools.docker`):

```python
from ecmtools.docker import check_image_archs, docker_tag

images = docker_tag("rancher", "k3s", "v1.25.14-k3s1")
check_image_archs("rancher", "k3s", "v1.25.14-k3s1", ["amd64", "arm64"])
```

`check_image_archs` raises `DockerTagError` when the tag is missing or lacks
an architecture.

Image reports (`ecmtools.inspect`): build `ImageResult` values with the
`RegistryImage` found in each registry and pass them to `format_table` or
`format_csv`.

Release timelines (`ecmtools.events`, `ecmtools.tracing`):
`ReleaseClient.get_rke2_release` gathers the Kubernetes release, RKE2 release
candidates, merged pull requests and Drone builds of a version;
`trace_release` turns them into spans on a `Tracer`, and
`GrafanaJsonTraceExporter(stream).export_spans(tracer.finished)` writes them
as Grafana-compatible JSON.

## What this package does not do

- It has no central release command: it does not tag releases, generate
  release notes, update references or open pull requests, and it has no
  command to generate, view or edit the config file (the `ecmtools.config`
  functions are there for library use).
- It does not relabel or comment on GitHub issues.
- It ships no GitHub or Drone API clients: `ReleaseClient` works with the
  repository, pull-request and build-listing objects you give it, and there
  is no command that produces a release report.