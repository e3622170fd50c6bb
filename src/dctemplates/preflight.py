"""
Host environment detection and preflight checks.

Works out which container engine to drive and how the devcontainer CLI should
reach it:
  - podman on PATH                     -> podman
  - docker on PATH that is podman      -> podman, called as ``docker``
  - docker on PATH                     -> docker
  - neither                            -> fatal

Then points ``DOCKER_HOST`` at the engine socket for the detected OS
(podman machine on macOS, Podman Desktop on Windows, the rootless user socket
on Linux, the system socket for Docker).
"""

import os
import platform
import shutil
import time
from pathlib import Path
from typing import Callable, List, MutableMapping, Optional

from ._util import debug as _debug_fn, log_info, log_warn
from .executor import Executor
from .schema import RuntimeInfo

WhichFn = Callable[[str], Optional[str]]


class PreconditionError(Exception):
    """A fatal, user-visible problem detected before any test runs."""


def _debug(msg: str) -> None:
    _debug_fn("preflight", msg)


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def detect_os(system: Optional[str] = None) -> str:
    """Map ``platform.system()`` to linux / macos / windows / unknown."""
    system = system if system is not None else platform.system()
    if system == "Linux":
        return "linux"
    if system == "Darwin":
        return "macos"
    if system == "Windows" or system.startswith(("MINGW", "MSYS", "CYGWIN")):
        return "windows"
    return "unknown"


def detect_runtime(executor: Executor, which: WhichFn = shutil.which) -> Optional[RuntimeInfo]:
    """Return runtime and docker path, or None when no engine is installed.

    ``os_type`` is left empty; ``detect_environment`` fills it in.
    """
    if which("podman"):
        return RuntimeInfo(os_type="", runtime="podman", docker_path="podman")
    if which("docker"):
        result = executor(["docker", "--version"])
        banner = (result.stdout + result.stderr).lower()
        if "podman" in banner:
            _debug(f"docker is podman: {banner.strip()}")
            return RuntimeInfo(os_type="", runtime="podman", docker_path="docker")
        return RuntimeInfo(os_type="", runtime="docker", docker_path="docker")
    return None


# ---------------------------------------------------------------------------
# Socket setup
# ---------------------------------------------------------------------------

def _is_socket(path: Path) -> bool:
    try:
        return path.is_socket()
    except OSError:
        return False


def _podman_machine_running(executor: Executor) -> bool:
    result = executor(["podman", "machine", "list", "--format", "{{.Running}}"])
    return result.returncode == 0 and "true" in result.stdout


def setup_podman(
    os_type: str,
    executor: Executor,
    environ: MutableMapping[str, str],
    is_socket: Callable[[Path], bool] = _is_socket,
    sleep: Callable[[float], None] = time.sleep,
    docker_path: str = "podman",
) -> Optional[str]:
    """Point DOCKER_HOST at the podman socket for *os_type*. Returns its value.

    *docker_path* is the podman binary on PATH, which may be named docker.
    """
    if os_type == "macos":
        if not _podman_machine_running(executor):
            log_warn("Podman machine may not be running. Attempting to start...")
            executor(["podman", "machine", "start"])
            sleep(2)
        result = executor([
            "podman", "machine", "inspect",
            "--format", "{{.ConnectionInfo.PodmanSocket.Path}}",
        ])
        socket_path = result.stdout.strip() if result.returncode == 0 else ""
        if socket_path:
            environ["DOCKER_HOST"] = f"unix://{socket_path}"
        else:
            log_warn("Could not get podman machine socket path, using default")
            environ["DOCKER_HOST"] = "unix:///var/run/docker.sock"

    elif os_type == "windows":
        # Podman Desktop normally exports DOCKER_HOST itself.
        if not environ.get("DOCKER_HOST"):
            candidates = [
                Path("/run/podman/podman.sock"),
                Path.home() / ".local/share/containers/podman/machine/podman.sock",
            ]
            for candidate in candidates:
                if is_socket(candidate):
                    environ["DOCKER_HOST"] = f"unix://{candidate}"
                    break

    elif os_type == "linux":
        user_socket = Path(f"/run/user/{os.getuid()}/podman/podman.sock")
        if not is_socket(user_socket):
            _debug(f"{user_socket} missing, trying systemctl --user start podman.socket")
            executor(["systemctl", "--user", "start", "podman.socket"])
            sleep(1)
        if is_socket(user_socket):
            environ["DOCKER_HOST"] = f"unix://{user_socket}"
        else:
            log_warn(f"Podman socket not found at {user_socket}")
            log_warn("Try: systemctl --user enable --now podman.socket")

    version = executor([docker_path, "--version"])
    log_info(f"Podman version: {version.stdout.strip() if version.returncode == 0 else 'unknown'}")
    log_info(f"DOCKER_HOST={environ.get('DOCKER_HOST') or '<not set>'}")
    return environ.get("DOCKER_HOST")


def setup_docker(
    executor: Executor,
    environ: MutableMapping[str, str],
    is_socket: Callable[[Path], bool] = _is_socket,
) -> Optional[str]:
    """Use the system Docker socket unless DOCKER_HOST is already set."""
    if not environ.get("DOCKER_HOST"):
        default_socket = Path("/var/run/docker.sock")
        if is_socket(default_socket):
            environ["DOCKER_HOST"] = f"unix://{default_socket}"
    version = executor(["docker", "--version"])
    log_info(f"Docker version: {version.stdout.strip() if version.returncode == 0 else 'unknown'}")
    log_info(f"DOCKER_HOST={environ.get('DOCKER_HOST') or '<default>'}")
    return environ.get("DOCKER_HOST")


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def detect_environment(
    executor: Executor,
    environ: MutableMapping[str, str],
    which: WhichFn = shutil.which,
    system: Optional[str] = None,
    is_socket: Callable[[Path], bool] = _is_socket,
    sleep: Callable[[float], None] = time.sleep,
) -> RuntimeInfo:
    """Detect OS + engine and configure DOCKER_HOST in *environ*.

    Raises PreconditionError when neither podman nor docker is installed.
    """
    os_type = detect_os(system)
    detected = detect_runtime(executor, which)
    if detected is None:
        raise PreconditionError("No container runtime found. Please install Podman or Docker.")
    log_info(f"Environment: {os_type} + {detected.runtime}")

    if detected.runtime == "podman":
        docker_host = setup_podman(
            os_type, executor, environ,
            is_socket=is_socket, sleep=sleep, docker_path=detected.docker_path,
        )
    else:
        docker_host = setup_docker(executor, environ, is_socket=is_socket)

    return RuntimeInfo(
        os_type=os_type,
        runtime=detected.runtime,
        docker_path=detected.docker_path,
        docker_host=docker_host,
    )


def devcontainer_options(info: RuntimeInfo) -> List[str]:
    """Extra ``devcontainer up`` flags for this environment."""
    opts: List[str] = []
    # buildx's docker-container driver cannot see local podman images, so the
    # UID-update build step fails on rootless Linux podman.
    if info.os_type == "linux" and info.runtime == "podman":
        opts += ["--update-remote-user-uid-default", "off"]
        log_info("Using --update-remote-user-uid-default off (Linux+Podman compatibility)")
    return opts


def check_devcontainer_cli(executor: Executor, which: WhichFn = shutil.which) -> str:
    """Return the devcontainer CLI version, or raise PreconditionError."""
    if not which("devcontainer"):
        raise PreconditionError(
            "devcontainer CLI not found. Install with: npm install -g @devcontainers/cli"
        )
    result = executor(["devcontainer", "--version"])
    version = result.stdout.strip() or "unknown"
    log_info(f"devcontainer CLI version: {version}")
    return version
