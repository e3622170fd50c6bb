"""
End-to-end tests for the single-template flow with fixture executors:
materialize → devcontainer up → exec test.sh → cleanup.
"""

from pathlib import Path

import pytest

from dctemplates.__main__ import main, template_main
from dctemplates.executor import RunResult
from dctemplates.preflight import PreconditionError
from dctemplates.runner import run_template_test

REPO_ROOT = Path(__file__).resolve().parent.parent


class FakeHost:
    """Docker host with the devcontainer CLI; records every command."""

    docker_banner = "Docker version 27.1.1\n"

    def __init__(self, up_rc=0, test_rc=0, container_ids="abc123\n"):
        self.up_rc = up_rc
        self.test_rc = test_rc
        self.container_ids = container_ids
        self.calls = []
        self.streamed = []
        self.dockerfile_at_up = None

    def which(self, name):
        return f"/usr/bin/{name}" if name in ("docker", "devcontainer") else None

    def executor(self, cmd, cwd=None):
        self.calls.append(cmd)
        if cmd == ["docker", "--version"]:
            return RunResult(stdout=self.docker_banner, stderr="", returncode=0)
        if cmd == ["devcontainer", "--version"]:
            return RunResult(stdout="0.72.0\n", stderr="", returncode=0)
        if cmd[:3] == ["docker", "container", "ls"]:
            return RunResult(stdout=self.container_ids, stderr="", returncode=0)
        return RunResult(stdout="", stderr="", returncode=0)

    def streamer(self, cmd, cwd=None):
        self.streamed.append(cmd)
        if cmd[1] == "up":
            workspace = Path(cmd[cmd.index("--workspace-folder") + 1])
            self.workspace = workspace
            self.dockerfile_at_up = (workspace / ".devcontainer" / "Dockerfile").read_text()
            return self.up_rc
        return self.test_rc

    def run(self, template="fedora", options=()):
        return run_template_test(
            REPO_ROOT,
            template,
            options,
            environ={},
            executor=self.executor,
            streamer=self.streamer,
            which=self.which,
            system="Linux",
            sleep=lambda _s: None,
        )


def test_passing_template():
    host = FakeHost()
    assert host.run("fedora", ["imageVariant=42"]) == 0

    assert "ARG FEDORA_VERSION=42" in host.dockerfile_at_up
    up, run_test = host.streamed
    assert up[:2] == ["devcontainer", "up"]
    assert up[up.index("--id-label") + 1].startswith("test-container=fedora-")
    assert run_test[:2] == ["devcontainer", "exec"]
    assert run_test[run_test.index("--docker-path") + 1] == "docker"
    assert "bash test.sh" in run_test[-1]
    assert ["docker", "rm", "-f", "abc123"] in host.calls
    assert not host.workspace.exists()


def test_tests_copied_into_container_as_root():
    host = FakeHost()
    host.run("ubi")
    copy = next(c for c in host.calls if c[:2] == ["docker", "exec"])
    assert copy[2:5] == ["-u", "root", "abc123"]
    assert "/test-project /tmp/" in copy[-1]


def test_failing_test_script_exit_code():
    host = FakeHost(test_rc=3)
    assert host.run("ubi") == 3
    assert ["docker", "rm", "-f", "abc123"] in host.calls


def test_up_failure_still_cleans_up():
    host = FakeHost(up_rc=1)
    assert host.run("podman-in-podman") == 1
    assert len(host.streamed) == 1
    assert ["docker", "rm", "-f", "abc123"] in host.calls
    assert not host.workspace.exists()


class DockerIsPodmanHost(FakeHost):
    """Only a docker binary, which is really podman."""

    docker_banner = "podman version 5.2.0\n"


def test_docker_alias_for_podman_uses_docker_binary():
    host = DockerIsPodmanHost()
    assert host.run("fedora") == 0
    assert ["docker", "rm", "-f", "abc123"] in host.calls
    assert any(c[:2] == ["docker", "exec"] for c in host.calls)
    assert not any(c[0] == "podman" for c in host.calls)


def test_copy_failure_fails_the_run():
    host = FakeHost(container_ids="")
    assert host.run("fedora") == 1
    assert len(host.streamed) == 1  # test.sh never ran


def test_missing_test_script_fails_inside_container():
    from dctemplates.devcontainer import _RUN_TEST_SCRIPT

    assert _RUN_TEST_SCRIPT.rstrip().endswith("exit 1; fi")


def test_podman_tag_reaches_build():
    host = FakeHost()
    host.run("podman-in-podman", ["imageVariant=5.7.1"])
    assert "FROM quay.io/podman/stable:v5.7.1" in host.dockerfile_at_up


def test_missing_devcontainer_cli():
    host = FakeHost()
    host.which = lambda name: "/usr/bin/docker" if name == "docker" else None
    with pytest.raises(PreconditionError, match="devcontainer CLI not found"):
        host.run()
    assert host.streamed == []


def test_missing_runtime():
    host = FakeHost()
    host.which = lambda name: None
    with pytest.raises(PreconditionError, match="No container runtime found"):
        host.run()


def test_missing_template_raises_before_any_command(tmp_path):
    host = FakeHost()
    with pytest.raises(PreconditionError):
        run_template_test(tmp_path, "nope", executor=host.executor, streamer=host.streamer, which=host.which)
    assert host.calls == []


# ---------------------------------------------------------------------------
# CLI entry points
# ---------------------------------------------------------------------------

def test_cli_missing_template_exits_nonzero_without_logs(tmp_path, capsys):
    assert template_main(["--root", str(tmp_path), "nope"]) == 1
    assert list(tmp_path.iterdir()) == []
    assert "Template 'nope' not found" in capsys.readouterr().err


def test_cli_module_missing_template(tmp_path):
    assert main(["test", "--root", str(tmp_path), "nope"]) == 1
    assert list(tmp_path.iterdir()) == []


def test_cli_usage_lists_templates(capsys):
    assert template_main(["--root", str(REPO_ROOT)]) == 1
    out = capsys.readouterr().out
    assert "Usage: test-template" in out
    listed = out.split("Available templates:")[1].split()
    assert listed == ["fedora", "podman-in-podman", "ubi"]


def test_cli_matrix_dispatch(tmp_path, monkeypatch):
    seen = {}

    def fake_run_matrix(root, **kwargs):
        seen["root"] = root
        seen.update(kwargs)
        return 0

    monkeypatch.setattr("dctemplates.matrix.run_matrix", fake_run_matrix)
    assert main(["test-all", "--root", str(tmp_path), "--skip-fedora", "--only-failed"]) == 0
    assert seen["root"] == tmp_path
    assert seen["skip_fedora"] is True
    assert seen["skip_ubi"] is False
    assert seen["only_failed"] is True
