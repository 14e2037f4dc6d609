import io
import json

import pytest

from ecmtools.config import (
    ConfigValidationError,
    VersionNotFoundError,
    example_config,
    load,
    read,
    render_view,
    text_editor_name,
    view,
)


def test_read_example_and_validate():
    conf = example_config()
    config = read(io.StringIO(conf))
    config.validate()
    assert config.to_dict() == json.loads(conf)
    assert config.user.email == "user@example.com"


def test_example_cli_is_null():
    assert json.loads(example_config())["cli"] is None


def test_invalid_email_fails():
    config = read(io.StringIO(example_config()))
    config.user.email = "not-an-email"
    with pytest.raises(ConfigValidationError, match="email"):
        config.validate()


def test_suffix_must_start_with_k3s():
    config = read(io.StringIO(example_config()))
    config.k3s.versions["v1.x.y"].new_suffix = "rke2r1"
    with pytest.raises(ConfigValidationError, match="startswith"):
        config.validate()


def test_workspace_dirpath(tmp_path):
    config = read(io.StringIO(example_config()))
    config.charts.workspace = str(tmp_path / "missing-no-slash")
    with pytest.raises(ConfigValidationError, match="dirpath"):
        config.validate()
    config.charts.workspace = str(tmp_path)
    config.validate()
    assert config.charts.workspace == str(tmp_path)


def test_required_field_missing():
    data = json.loads(example_config())
    data["dashboard"]["repo_name"] = ""
    config = read(io.StringIO(json.dumps(data)))
    with pytest.raises(ConfigValidationError, match="required"):
        config.validate()


def test_load_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(example_config())
    assert load(path).rke2.versions == ["v1.x.y"]


def test_read_rejects_bad_json():
    with pytest.raises(ValueError):
        read(io.StringIO("{not json"))


def test_view_contents():
    config = read(io.StringIO(example_config()))
    out = io.StringIO()
    view(config, out)
    text = out.getvalue()
    assert text == render_view(config)
    assert "\tEmail:           user@example.com\n" in text
    assert "BranchLines:     [2.10 2.9 2.8]\n" in text
    assert "\t\tDry Run:          false\n" in text


def test_view_requires_sections():
    config = read(io.StringIO(example_config()))
    config.k3s = None
    with pytest.raises(ValueError):
        render_view(config)


def test_version_not_found_message():
    err = VersionNotFoundError("v1.2.3")
    assert str(err) == "verify your config file, version not found: v1.2.3"


def test_text_editor_name(monkeypatch):
    monkeypatch.delenv("EDITOR", raising=False)
    assert text_editor_name() == "vi"
    monkeypatch.setenv("EDITOR", "nano")
    assert text_editor_name() == "nano"