"""Tests for materializing shipped templates into a scratch directory."""

import os
from pathlib import Path

from dctemplates.catalog import template_paths
from dctemplates.executor import RunResult
from dctemplates.renderers import make_env, render_test_utils
from dctemplates.workspace import materialize, relabel_for_containers, scratch_dir

REPO_ROOT = Path(__file__).resolve().parent.parent


def _materialize(tmp_path: Path, name: str, overrides=None):
    template_dir, test_dir = template_paths(REPO_ROOT, name)
    return materialize(name, template_dir, test_dir, tmp_path / "work", overrides)


def test_fedora_defaults_leave_no_placeholders(tmp_path):
    ws = _materialize(tmp_path, "fedora")
    assert ws.unresolved == []
    dockerfile = (ws.path / ".devcontainer" / "Dockerfile").read_text()
    config = (ws.path / ".devcontainer" / "devcontainer.json").read_text()
    assert "ARG FEDORA_VERSION=latest" in dockerfile
    assert '"FEDORA_VERSION": "latest"' in config
    assert "${templateOption:" not in dockerfile + config


def test_fedora_override(tmp_path):
    ws = _materialize(tmp_path, "fedora", {"imageVariant": "42"})
    assert "ARG FEDORA_VERSION=42" in (ws.path / ".devcontainer" / "Dockerfile").read_text()


def test_ubi_both_options(tmp_path):
    ws = _materialize(tmp_path, "ubi", {"imageVariant": "8", "variant": "ubi-minimal"})
    dockerfile = (ws.path / ".devcontainer" / "Dockerfile").read_text()
    assert "ARG UBI_VERSION=8" in dockerfile
    assert "ARG VARIANT=ubi-minimal" in dockerfile
    assert ws.unresolved == []


def test_podman_in_podman_defaults(tmp_path):
    ws = _materialize(tmp_path, "podman-in-podman")
    dockerfile = (ws.path / ".devcontainer" / "Dockerfile").read_text()
    config = (ws.path / ".devcontainer" / "devcontainer.json").read_text()
    assert "FROM quay.io/podman/stable:latest" in dockerfile
    assert "ARG INSTALL_BUILDAH=true" in dockerfile
    assert '"PODMAN_TAG": "latest"' in config
    assert "${PODMAN_TAG" not in dockerfile + config
    assert ws.unresolved == []


def test_podman_in_podman_version_override(tmp_path):
    ws = _materialize(tmp_path, "podman-in-podman", {"imageVariant": "5.7.1", "installBuildah": "false"})
    dockerfile = (ws.path / ".devcontainer" / "Dockerfile").read_text()
    assert "FROM quay.io/podman/stable:v5.7.1" in dockerfile
    assert "ARG INSTALL_BUILDAH=false" in dockerfile
    assert ws.replacements["${PODMAN_TAG:-latest}"] == "v5.7.1"


def test_test_project_staged(tmp_path):
    ws = _materialize(tmp_path, "fedora")
    test_sh = ws.test_project / "test.sh"
    assert test_sh.is_file()
    assert os.access(test_sh, os.X_OK)
    assert (ws.test_project / "test-utils-fedora.sh").is_file()


def test_fallback_test_utils_rendered(tmp_path):
    ws = _materialize(tmp_path, "ubi")
    helpers = (ws.test_project / "test-utils.sh").read_text(encoding="utf-8")
    assert helpers.startswith("#!/bin/bash")
    assert "reportResults()" in helpers
    assert "${#FAILED[@]}" in helpers


def test_test_utils_render_with_given_env():
    helpers = render_test_utils(make_env())
    assert "reportResults()" in helpers


def test_shipped_test_utils_not_overwritten(tmp_path):
    template_dir, _ = template_paths(REPO_ROOT, "fedora")
    test_dir = tmp_path / "tests"
    test_dir.mkdir()
    (test_dir / "test.sh").write_text("#!/bin/bash\n")
    (test_dir / "test-utils.sh").write_text("# mine\n")
    ws = materialize("fedora", template_dir, test_dir, tmp_path / "work")
    assert (ws.test_project / "test-utils.sh").read_text() == "# mine\n"


def test_template_sources_untouched(tmp_path):
    _materialize(tmp_path, "fedora", {"imageVariant": "41"})
    original = (REPO_ROOT / "src" / "fedora" / ".devcontainer" / "Dockerfile").read_text()
    assert "${templateOption:imageVariant}" in original


# ---------------------------------------------------------------------------
# scratch_dir / relabel_for_containers
# ---------------------------------------------------------------------------

def test_scratch_dir_removed():
    with scratch_dir() as d:
        assert d.is_dir()
    assert not d.exists()


def test_scratch_dir_kept():
    with scratch_dir(keep=True) as d:
        pass
    assert d.is_dir()
    d.rmdir()


def test_relabel_only_when_enforcing(tmp_path):
    calls = []

    def executor(cmd, cwd=None):
        calls.append(cmd)
        if cmd == ["getenforce"]:
            return RunResult(stdout="Permissive\n", stderr="", returncode=0)
        return RunResult(stdout="", stderr="", returncode=0)

    assert relabel_for_containers(tmp_path, executor, which=lambda n: "/usr/bin/" + n) is False
    assert calls == [["getenforce"]]


def test_relabel_enforcing(tmp_path):
    calls = []

    def executor(cmd, cwd=None):
        calls.append(cmd)
        if cmd == ["getenforce"]:
            return RunResult(stdout="Enforcing\n", stderr="", returncode=0)
        return RunResult(stdout="", stderr="", returncode=0)

    assert relabel_for_containers(tmp_path, executor, which=lambda n: "/usr/bin/" + n) is True
    assert calls[-1] == ["chcon", "-Rt", "container_file_t", str(tmp_path)]


def test_relabel_without_chcon(tmp_path):
    def executor(cmd, cwd=None):
        raise AssertionError("no command expected")

    assert relabel_for_containers(tmp_path, executor, which=lambda n: None) is False
