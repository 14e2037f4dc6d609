[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ecmtools"
version = "0.1.0"
description = "Release engineering utilities for K3s, RKE2, Rancher and related distributions"
requires-python = ">=3.10"
keywords = [
    "release",
    "semver",
    "kubernetes",
    "rke2",
    "k3s",
    "rancher",
    "docker",
    "tracing",
    "coverage",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Topic :: Software Development :: Quality Assurance",
    "Topic :: System :: Software Distribution",
]
dependencies = [
    "requests>=2.28",
    "pyyaml>=6.0",
    "matplotlib>=3.6",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
semv = "ecmtools.semv:main"
test-coverage = "ecmtools.coverage:main"

[tool.hatch.build.targets.wheel]
packages = ["ecmtools"]

[tool.hatch.build.targets.sdist]
include = ["ecmtools", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
