"""
Single-template smoke test: materialize, ``devcontainer up``, run test.sh, clean up.

Preconditions (template/test dirs, container engine, devcontainer CLI) are
checked before anything is written; a failure raises PreconditionError.
"""

import os
import shutil
import time
from pathlib import Path
from typing import Callable, MutableMapping, Optional, Sequence

from ._util import log_error, log_info
from .catalog import template_paths
from .devcontainer import DevContainer, make_id_label
from .executor import Executor, Streamer, make_executor, make_streamer
from .options import parse_overrides
from .preflight import check_devcontainer_cli, detect_environment, devcontainer_options
from .workspace import materialize, relabel_for_containers, scratch_dir


def run_template_test(
    root: Path,
    template_name: str,
    option_args: Sequence[str] = (),
    *,
    keep_workdir: bool = False,
    environ: Optional[MutableMapping[str, str]] = None,
    executor: Optional[Executor] = None,
    streamer: Optional[Streamer] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
    system: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Test one template with optional ``name=value`` overrides.

    Returns the exit code of the in-container test script (1 if the container
    could not be started).
    """
    template_dir, test_dir = template_paths(root, template_name)
    log_info(f"Testing template: {template_name}")

    if environ is None:
        environ = dict(os.environ)
    # Both see DOCKER_HOST once detect_environment sets it in environ.
    if executor is None:
        executor = make_executor(env=environ)
    if streamer is None:
        streamer = make_streamer(env=environ)

    runtime = detect_environment(executor, environ, which=which, system=system, sleep=sleep)
    up_options = devcontainer_options(runtime)
    check_devcontainer_cli(executor, which=which)

    overrides = parse_overrides(option_args)

    with scratch_dir(keep=keep_workdir) as work_dir:
        relabel_for_containers(work_dir, executor, which=which)
        log_info(f"Working directory: {work_dir}")
        materialize(template_name, template_dir, test_dir, work_dir, overrides)

        log_info("Building devcontainer...")
        container = DevContainer(
            work_dir,
            make_id_label(template_name),
            runtime,
            executor,
            streamer,
            up_options=up_options,
        )
        try:
            if not container.up():
                log_error("Failed to build/start devcontainer")
                return 1
            log_info("Container started successfully!")

            log_info("Setting up test environment...")
            container.stub_vscode_server()
            log_info("Running tests...")
            if container.copy_tests_into_container():
                rc = container.run_test_script()
            else:
                log_error("Could not copy test files into the container")
                rc = 1
        finally:
            container.remove()

    if rc == 0:
        log_info(f"✅ All tests passed for {template_name}!")
    else:
        log_error(f"❌ Tests failed for {template_name} (exit code: {rc})")
    return rc
