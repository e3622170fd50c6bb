"""
Materialize a template into a scratch directory ready for ``devcontainer up``.

    <scratch>/                      copy of src/<template>, options substituted
    <scratch>/test-project/         copy of test/<template>, made executable
    <scratch>/test-project/test-utils.sh   fallback helpers if not shipped
"""

import contextlib
import shutil
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional

from ._util import debug as _debug_fn, log_info, log_warn
from .catalog import DESCRIPTOR_NAME, load_descriptor
from .executor import Executor
from .options import apply_options, find_unresolved, resolve_options
from .renderers import render_test_utils
from .schema import OptionAssignment

TEST_PROJECT = "test-project"


def _debug(msg: str) -> None:
    _debug_fn("workspace", msg)


@dataclass
class Workspace:
    path: Path
    assignments: List[OptionAssignment] = field(default_factory=list)
    replacements: Dict[str, str] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)

    @property
    def test_project(self) -> Path:
        return self.path / TEST_PROJECT


@contextlib.contextmanager
def scratch_dir(keep: bool = False) -> Iterator[Path]:
    """Temporary working directory, removed on exit unless *keep*."""
    path = Path(tempfile.mkdtemp(prefix="dctemplates-"))
    # Bind-mounted into the container, so it must be world-readable.
    path.chmod(0o755)
    try:
        yield path
    finally:
        if keep:
            log_info(f"Keeping working directory: {path}")
        else:
            shutil.rmtree(path, ignore_errors=True)


def relabel_for_containers(path: Path, executor: Executor, which=shutil.which) -> bool:
    """Give *path* the ``container_file_t`` SELinux type on enforcing hosts."""
    if not which("chcon"):
        return False
    enforce = executor(["getenforce"])
    if enforce.stdout.strip() != "Enforcing":
        return False
    result = executor(["chcon", "-Rt", "container_file_t", str(path)])
    if result.returncode != 0:
        _debug(f"chcon failed (rc={result.returncode}): {result.stderr.strip()}")
        return False
    return True


def _make_executable(tree: Path) -> None:
    for p in [tree, *tree.rglob("*")]:
        try:
            mode = p.stat().st_mode
            p.chmod(mode | stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH
                    | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as exc:
            _debug(f"chmod {p}: {exc}")


def materialize(
    template_name: str,
    template_dir: Path,
    test_dir: Path,
    work_dir: Path,
    overrides: Optional[Mapping[str, str]] = None,
) -> Workspace:
    """Copy, configure and stage tests for *template_name* inside *work_dir*."""
    work_dir = Path(work_dir)
    shutil.copytree(template_dir, work_dir, dirs_exist_ok=True)

    ws = Workspace(path=work_dir)
    log_info("Configuring template options...")
    descriptor_path = work_dir / DESCRIPTOR_NAME
    if descriptor_path.is_file():
        descriptor = load_descriptor(descriptor_path)
        ws.assignments = resolve_options(descriptor, overrides or {})
        ws.replacements = apply_options(work_dir, template_name, ws.assignments)
    else:
        log_warn(f"{DESCRIPTOR_NAME} not found; template options left as-is")

    ws.unresolved = find_unresolved(work_dir)
    if ws.unresolved:
        log_warn(f"Unresolved template options: {', '.join(ws.unresolved)}")

    log_info("Copying test files...")
    shutil.copytree(test_dir, ws.test_project, dirs_exist_ok=True)
    helpers = ws.test_project / "test-utils.sh"
    if not helpers.exists():
        helpers.write_text(render_test_utils(), encoding="utf-8")
    _make_executable(ws.test_project)
    return ws
