"""
Thin driver for the Dev Container CLI (``devcontainer up`` / ``exec``) plus the
few direct engine calls the smoke test needs (find, copy into, remove).
"""

import time
from pathlib import Path
from typing import List, Optional

from ._util import debug as _debug_fn, log_info
from .executor import Executor, Streamer
from .schema import RuntimeInfo

CONTAINER_TEST_DIR = "/tmp/test-project"

_RUN_TEST_SCRIPT = (
    'set -e && if [ -f "/tmp/test-project/test.sh" ]; then '
    "cd /tmp/test-project && bash test.sh; "
    'else echo "test.sh not found"; '
    'ls -la /tmp/test-project/ 2>/dev/null || echo "test-project dir not found"; exit 1; fi'
)


def _debug(msg: str) -> None:
    _debug_fn("devcontainer", msg)


def make_id_label(template_name: str, now: Optional[float] = None) -> str:
    stamp = int(now if now is not None else time.time())
    return f"test-container={template_name}-{stamp}"


class DevContainer:
    """One dev container instance, identified by its id label.

    Parameters
    ----------
    workspace:
        Materialized template directory (``--workspace-folder``).
    runtime:
        Detected engine; its docker_path is used for direct engine calls.
    executor:
        Captures output; used for short, quiet commands.
    streamer:
        Passes output through; used for build and test steps.
    """

    def __init__(
        self,
        workspace: Path,
        id_label: str,
        runtime: RuntimeInfo,
        executor: Executor,
        streamer: Streamer,
        up_options: Optional[List[str]] = None,
    ) -> None:
        self.workspace = Path(workspace)
        self.id_label = id_label
        self.runtime = runtime
        self._executor = executor
        self._streamer = streamer
        self._up_options = list(up_options or [])

    @property
    def container_workspace(self) -> str:
        return f"/workspaces/{self.workspace.name}"

    def _engine(self) -> str:
        # docker_path is the binary actually on PATH (docker may be podman).
        return self.runtime.docker_path

    def _exec_cmd(self, script: str) -> List[str]:
        return [
            "devcontainer", "exec",
            "--workspace-folder", str(self.workspace),
            "--id-label", self.id_label,
            "--docker-path", self.runtime.docker_path,
            "/bin/sh", "-c", script,
        ]

    def up(self) -> bool:
        """Build and start the container. Returns True on success."""
        log_info("Starting devcontainer up...")
        cmd = [
            "devcontainer", "up",
            "--id-label", self.id_label,
            "--workspace-folder", str(self.workspace),
        ] + self._up_options
        return self._streamer(cmd, cwd=self.workspace) == 0

    def stub_vscode_server(self) -> None:
        """Create the VS Code server dirs some feature tests look for."""
        log_info("Creating VS Code Server stubs...")
        result = self._executor(self._exec_cmd(
            "mkdir -p $HOME/.vscode-server/bin $HOME/.vscode-server/extensions"
        ))
        if result.returncode != 0:
            _debug(f"stub dirs failed (rc={result.returncode}): {result.stderr.strip()}")

    def container_ids(self) -> List[str]:
        result = self._executor([
            self._engine(), "container", "ls", "-f", f"label={self.id_label}", "-q",
        ])
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def copy_tests_into_container(self) -> bool:
        """Copy test-project to a container-local, vscode-owned directory."""
        log_info("Copying test files to container-local directory...")
        ids = self.container_ids()
        if not ids:
            _debug(f"no container found for {self.id_label}")
            return False
        src = f"{self.container_workspace}/test-project"
        script = (
            f"cp -r {src} /tmp/ "
            f"&& if id vscode > /dev/null 2>&1; then chown -R vscode:vscode {CONTAINER_TEST_DIR}/; fi "
            f"&& chmod -R 755 {CONTAINER_TEST_DIR}/"
        )
        result = self._executor([self._engine(), "exec", "-u", "root", ids[0], "sh", "-c", script])
        if result.returncode != 0:
            _debug(f"copy failed (rc={result.returncode}): {result.stderr.strip()}")
            return False
        return True

    def run_test_script(self) -> int:
        """Run test.sh inside the container; returns its exit code."""
        log_info("Executing test script...")
        return self._streamer(self._exec_cmd(_RUN_TEST_SCRIPT), cwd=self.workspace)

    def remove(self) -> None:
        log_info("Cleaning up...")
        for container_id in self.container_ids():
            result = self._executor([self._engine(), "rm", "-f", container_id])
            if result.returncode != 0:
                _debug(f"rm {container_id} failed: {result.stderr.strip()}")
