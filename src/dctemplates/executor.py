"""
Subprocess execution seam.

Everything that talks to podman, docker or the devcontainer CLI goes through an
``Executor``: a callable taking an argv list and returning a ``RunResult``.
Tests substitute fixture executors; production code uses ``make_executor``.
"""

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from ._util import debug as _debug_fn


@dataclass
class RunResult:
    stdout: str
    stderr: str
    returncode: int


Executor = Callable[..., RunResult]
Streamer = Callable[..., int]


def _debug(msg: str) -> None:
    _debug_fn("executor", msg)


def make_executor(
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[int] = None,
) -> Executor:
    """Return an executor that captures output of each command.

    A missing binary is reported as returncode 127, the same way a shell would.
    """

    def run(cmd: List[str], cwd: Optional[Path] = None) -> RunResult:
        _debug(f"run: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            return RunResult(stdout="", stderr=str(exc), returncode=127)
        except subprocess.TimeoutExpired:
            return RunResult(stdout="", stderr=f"timed out after {timeout}s", returncode=124)
        return RunResult(stdout=result.stdout, stderr=result.stderr, returncode=result.returncode)

    return run


def make_streamer(env: Optional[Mapping[str, str]] = None) -> Streamer:
    """Return a streamer: output goes straight through to our stdout/stderr.

    Used for the long-running devcontainer steps whose progress the user
    should see as it happens. Returns the exit code.
    """

    def stream(cmd: List[str], cwd: Optional[Path] = None) -> int:
        _debug(f"stream: {' '.join(cmd)}")
        # Our own buffered output must land before the child's.
        sys.stdout.flush()
        try:
            return subprocess.call(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
            )
        except FileNotFoundError as exc:
            print(str(exc), file=sys.stderr)
            return 127

    return stream
