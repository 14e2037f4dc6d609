import io
import os
import sys

import pytest

from ecmtools import coverage as cov

VAGRANT_K3S = """\
Vagrant.configure("2") do |config|
  node.vm.provision "k3s", type: "k3s" do |k3s|
    k3s.args = "server --cluster-init --node-taint=foo"
    k3s.config = <<~YAML
      write-kubeconfig-mode: 644
      token: token
    YAML
  end
  node.vm.provision "k3s", type: "k3s" do |k3s|
    k3s.args = %W[agent --node-label=x]
  end
end
"""

INT_TEST = """\
var serverArgs = []string{"--cluster-init", "--disable traefik"}
func TestX() {}
"""

HELP_SCRIPT = """\
import sys
if sys.argv[1] == "server":
    print("   --cluster-init   initialize")
    print("   --node-taint value   taint")
    print("   --unused-flag   nothing")
elif sys.argv[1] == "agent":
    print("   --node-label value   label")
else:
    sys.exit(3)
"""


def _make_repo(root):
    vagrant = root / "tests" / "e2e" / "splitserver" / "Vagrantfile"
    vagrant.parent.mkdir(parents=True)
    vagrant.write_text(VAGRANT_K3S)
    int_test = root / "tests" / "integration" / "etcd" / "etcd_int_test.go"
    int_test.parent.mkdir(parents=True)
    int_test.write_text(INT_TEST)
    binary = root / "bin" / "k3s"
    binary.parent.mkdir(parents=True)
    binary.write_text(f"#!{sys.executable}\n" + HELP_SCRIPT)
    binary.chmod(0o755)
    return vagrant, int_test, binary


def test_discover_test_files(tmp_path):
    root = tmp_path / "k3s"
    vagrant, int_test, _ = _make_repo(root)
    vagrant_files, int_files = cov.discover_test_files(str(root))
    assert vagrant_files == [str(vagrant)]
    assert int_files == [str(int_test)]


def test_discover_missing_root(tmp_path):
    with pytest.raises(FileNotFoundError):
        cov.discover_test_files(str(tmp_path / "nothing"))


def test_extract_config_yaml_k3s(tmp_path):
    root = tmp_path / "k3s"
    vagrant, _, _ = _make_repo(root)
    result = cov.extract_config_yaml(str(vagrant), str(root))
    assert result.short_path == "e2e/splitserver/Vagrantfile"
    assert result.server_arguments == {
        "cluster-init", "node-taint", "write-kubeconfig-mode", "token",
    }
    assert result.agent_arguments == {"--node-label=x"}


def test_extract_config_yaml_rke2(tmp_path):
    root = tmp_path / "rke2"
    vagrant = root / "tests" / "Vagrantfile"
    vagrant.parent.mkdir(parents=True)
    vagrant.write_text(
        "config = <<-YAML\nnode-name: one\nYAML\n"
        "inline: 'INSTALL_RKE2_TYPE=server sh'\n"
    )
    result = cov.extract_config_yaml(str(vagrant), str(root))
    assert result.server_arguments == {"node-name"}
    assert result.agent_arguments == set()


def test_extract_config_yaml_rejects_non_mapping(tmp_path):
    root = tmp_path / "rke2"
    vagrant = root / "tests" / "Vagrantfile"
    vagrant.parent.mkdir(parents=True)
    vagrant.write_text("YAML\n- a\n- b\nYAML\nINSTALL_RKE2_TYPE=server ")
    with pytest.raises(ValueError):
        cov.extract_config_yaml(str(vagrant), str(root))


def test_extract_test_args(tmp_path):
    root = tmp_path / "k3s"
    _, int_test, _ = _make_repo(root)
    result = cov.extract_test_args(str(int_test), str(root))
    assert result.short_path == "integration/etcd/etcd_int_test.go"
    assert result.server_arguments == {"cluster-init", "disable", "traefik"}
    assert result.agent_arguments == set()


def test_total_used():
    assert cov.total_used({"a": 0, "b": 2, "c": 1}) == 2
    assert cov.total_used({}) == 0


def test_parse_help():
    flags = cov.parse_help("  --debug   turn on\n  --data-dir value  dir\n")
    assert flags == {"debug": 0, "data-dir": 0}


def test_extract_help(tmp_path):
    _, _, binary = _make_repo(tmp_path / "k3s")
    assert cov.extract_help(str(binary), "agent") == {"node-label": 0}


def test_extract_help_failure(tmp_path):
    _, _, binary = _make_repo(tmp_path / "k3s")
    with pytest.raises(RuntimeError, match="^exec output:"):
        cov.extract_help(str(binary), "bogus")


def test_markdown_table():
    text = cov.markdown_table(["a", "b", "c", "d"], ["e"])
    assert text == (
        "\n| Server flags: | | | \n| - | - | - |\n"
        "| <ul><li>- [x] a</li></ul> | <ul><li>- [x] b</li></ul> | <ul><li>- [x] c</li></ul> |\n"
        "| <ul><li>- [x] d</li></ul> | | |\n"
        "| <ul><li>- [ ] e</li></ul> | | |\n"
    )


def test_markdown_table_two_cells():
    text = cov.markdown_table([], ["p", "q"])
    assert text.endswith("| <ul><li>- [ ] p</li></ul> | <ul><li>- [ ] q</li></ul> | |\n")


def test_graph_results_writes_png(tmp_path):
    target = tmp_path / "graph.png"
    tests = [cov.TestCoverage("e2e/x/Vagrantfile", {"a"}), cov.TestCoverage("integration/y_int_test.go", {"a", "b"})]
    written = cov.graph_results({"a": 2, "b": 1, "c": 0}, tests[:1], tests[1:], str(target))
    assert written == str(target)
    assert target.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_run_coverage(tmp_path, monkeypatch):
    _make_repo(tmp_path / "k3s")
    monkeypatch.chdir(tmp_path)
    out = io.StringIO()
    flags = cov.run_coverage("k3s", list_flags=True, table=True, out=out)
    assert flags == {"cluster-init": 2, "node-taint": 1, "unused-flag": 0}
    text = out.getvalue()
    assert "Covering 2 out of 3" in text
    assert "Used flags:\n\ncluster-init\nnode-taint\nUnused flags:\n\nunused-flag\n" in text
    assert "<ul><li>- [ ] unused-flag</li></ul>" in text


def test_run_coverage_verbose(tmp_path, monkeypatch):
    _make_repo(tmp_path / "k3s")
    monkeypatch.chdir(tmp_path)
    out = io.StringIO()
    cov.run_coverage("k3s", verbose=True, out=out)
    assert "e2e/splitserver/Vagrantfile  contains:\n" in out.getvalue()


def test_run_coverage_missing_binary(tmp_path, monkeypatch):
    (tmp_path / "rke2").mkdir()
    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError, match="unable to find binary at"):
        cov.run_coverage("rke2", out=io.StringIO())


def test_main_requires_path():
    with pytest.raises(SystemExit) as exc:
        cov.main([])
    assert exc.value.code == 2


def test_main_reports_failure(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert cov.main(["-p", os.path.join("nowhere", "k3s")]) == 1


def test_main_success(tmp_path, monkeypatch, capsys):
    _make_repo(tmp_path / "k3s")
    monkeypatch.chdir(tmp_path)
    assert cov.main(["-p", "k3s"]) == 0
    assert "of agent flags" in capsys.readouterr().out