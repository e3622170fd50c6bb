"""
Combination matrix: run every supported version/variant of every template.

Each combination runs ``test-template`` as a child process with its output in
``.test-logs/test-<name>.log``. Failures are recorded one per line in
``.test-results.txt`` so ``--only-failed`` can re-run exactly those.
"""

import re
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ._util import debug as _debug_fn, log_error, log_info, log_test, log_warn
from .renderers import render_summary
from .schema import Combination, Outcome

FEDORA_VERSIONS = ("43", "42", "41", "latest", "rawhide")
UBI_VERSIONS = ("10", "9", "8")
UBI_VARIANTS = ("ubi", "ubi-minimal", "ubi-init")
# stable and latest resolve to the same image tag, so only one is run.
PODMAN_VARIANTS = ("stable",)

RESULTS_FILE = ".test-results.txt"
LOG_DIR = ".test-logs"
SUMMARY_FILE = "summary.md"

RunOne = Callable[[Combination, Path], int]
Group = Tuple[str, List[Combination]]


def _debug(msg: str) -> None:
    _debug_fn("matrix", msg)


# ---------------------------------------------------------------------------
# Matrix enumeration
# ---------------------------------------------------------------------------

def fedora_combinations() -> List[Combination]:
    return [Combination(template="fedora", options=(f"imageVariant={v}",)) for v in FEDORA_VERSIONS]


def ubi_combinations() -> List[Combination]:
    return [
        Combination(template="ubi", options=(f"imageVariant={version}", f"variant={variant}"))
        for version in UBI_VERSIONS
        for variant in UBI_VARIANTS
    ]


def podman_combinations() -> List[Combination]:
    return [
        Combination(template="podman-in-podman", options=(f"imageVariant={v}",))
        for v in PODMAN_VARIANTS
    ]


def build_matrix(
    skip_fedora: bool = False,
    skip_ubi: bool = False,
    skip_podman: bool = False,
) -> List[Group]:
    """Groups of combinations to run, in order, with their display names."""
    groups: List[Group] = []
    if skip_fedora:
        log_warn("Skipping Fedora tests")
    else:
        groups.append(("Fedora", fedora_combinations()))
    if skip_ubi:
        log_warn("Skipping UBI tests")
    else:
        groups.append(("UBI", ubi_combinations()))
    if skip_podman:
        log_warn("Skipping Podman-in-Podman tests")
    else:
        groups.append(("Podman-in-Podman", podman_combinations()))
    return groups


def log_name(combination: Combination) -> str:
    """File-name-safe test name, e.g. ``ubi-imageVariant9-variantubi-minimal``."""
    name = "-".join((combination.template,) + tuple(o.replace("=", "") for o in combination.options))
    name = name.replace(" ", "-").replace("=", "-").replace("--", "-")
    return re.sub(r"[^a-zA-Z0-9-]", "", name)


# ---------------------------------------------------------------------------
# Results file
# ---------------------------------------------------------------------------

class ResultsFile:
    """Failed combinations, one ``template key=value ...`` line each."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> List[Combination]:
        """Recorded combinations in file order, each listed once."""
        try:
            text = self.path.read_text()
        except FileNotFoundError:
            return []
        combos = []
        for line in text.splitlines():
            combo = Combination.from_line(line)
            if combo is not None and combo not in combos:
                combos.append(combo)
        return combos

    def write(self, combos: List[Combination]) -> None:
        self.path.write_text("".join(c.to_line() + "\n" for c in combos))

    def clear(self) -> None:
        self.write([])

    def append(self, combo: Combination) -> None:
        with open(self.path, "a") as f:
            f.write(combo.to_line() + "\n")

    def remove(self, combo: Combination) -> None:
        self.write([c for c in self.read() if c != combo])

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Running combinations
# ---------------------------------------------------------------------------

def subprocess_runner(root: Path) -> RunOne:
    """Run each combination as ``python -m dctemplates test`` into its log file."""

    def run_one(combination: Combination, log_file: Path) -> int:
        cmd = [
            sys.executable, "-m", "dctemplates", "test",
            "--root", str(root),
            combination.template, *combination.options,
        ]
        _debug(f"run: {' '.join(cmd)} > {log_file}")
        with open(log_file, "w") as log:
            return subprocess.call(cmd, stdout=log, stderr=subprocess.STDOUT)

    return run_one


@dataclass
class MatrixRunner:
    root: Path
    run_one: Optional[RunOne] = None
    outcomes: List[Outcome] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self.results = ResultsFile(self.root / RESULTS_FILE)
        self.log_dir = self.root / LOG_DIR
        if self.run_one is None:
            self.run_one = subprocess_runner(self.root)

    @property
    def passed(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.passed]

    @property
    def failed(self) -> List[Outcome]:
        return [o for o in self.outcomes if not o.passed]

    def reset_logs(self) -> None:
        shutil.rmtree(self.log_dir, ignore_errors=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def run_combination(self, combination: Combination, record_failure: bool = True) -> Outcome:
        """Run one combination; a failure is logged and recorded, never raised."""
        log_file = self.log_dir / f"test-{log_name(combination)}.log"
        label = combination.to_line()
        log_test(f"Testing: {label}")

        if combination.template == "ubi":
            version = combination.option_value("imageVariant")
            variant = combination.option_value("variant")
            if version and variant:
                log_info(f"   → UBI_VERSION={version}, VARIANT={variant}")
                log_info(f"   → Image: registry.access.redhat.com/ubi{version}/{variant}:latest")

        try:
            rc = self.run_one(combination, log_file)
        except OSError as exc:
            log_error(f"   Could not start test: {exc}")
            rc = 1

        outcome = Outcome(combination=combination, passed=rc == 0, log_file=log_file, returncode=rc)
        if outcome.passed:
            log_info(f"✅ PASSED: {label}")
        else:
            log_error(f"❌ FAILED: {label}")
            log_error(f"   Log: {log_file}")
            if record_failure:
                self.results.append(combination)
        self.outcomes.append(outcome)
        return outcome

    def run_groups(self, groups: List[Group]) -> None:
        for title, combos in groups:
            log_info("=" * 42)
            log_info(f"Testing {title} template")
            log_info("=" * 42)
            if title == "UBI":
                log_info(f"UBI versions to test: {' '.join(UBI_VERSIONS)}")
                log_info(f"UBI variants to test: {' '.join(UBI_VARIANTS)}")
                log_info(f"Total UBI combinations: {len(combos)}")
                print()
            for combo in combos:
                self.run_combination(combo)
            print()

    def retry_failed(self, combos: List[Combination]) -> None:
        """Re-run *combos*; lines for those that now pass leave the results file."""
        if not combos:
            log_warn("No failed tests to retry")
            return
        self.results.write(combos)
        log_info("=" * 42)
        log_info("Retrying failed tests")
        log_info("=" * 42)
        for count, combo in enumerate(combos, 1):
            log_test(f"Retrying ({count}): {combo}")
            # Already listed in the results file; only successes change it.
            if self.run_combination(combo, record_failure=False).passed:
                self.results.remove(combo)

    def summarize(self, started: Optional[datetime] = None) -> int:
        """Print the summary, write summary.md, and return the exit code."""
        render_summary(self.outcomes, self.log_dir / SUMMARY_FILE, started=started)

        log_info("=" * 42)
        log_info("Test Summary")
        log_info("=" * 42)
        log_info(f"Total tests: {len(self.outcomes)}")
        log_info(f"Passed: {len(self.passed)}")
        log_info(f"Failed: {len(self.failed)}")
        print()

        if self.failed:
            log_error("Failed tests:")
            for outcome in self.failed:
                log_error(f"  - {outcome.combination}")
            print()
            log_info(f"Failed test results saved to: {self.results.path}")
            log_info("To retry failed tests, run: test-all-combinations --only-failed")
            print()
            return 1

        log_info("✅ All tests passed!")
        self.results.delete()
        print()
        return 0


def run_matrix(
    root: Path,
    *,
    skip_fedora: bool = False,
    skip_ubi: bool = False,
    skip_podman: bool = False,
    only_failed: bool = False,
    run_one: Optional[RunOne] = None,
) -> int:
    """Run the full matrix (or the recorded failures). Returns the exit code."""
    runner = MatrixRunner(root, run_one=run_one)
    started = datetime.now(timezone.utc)

    log_info("=" * 42)
    log_info("Testing All Template Combinations")
    log_info("=" * 42)
    log_info(f"Start time: {started.astimezone().strftime('%c')}")
    print()

    if only_failed:
        # Read before clearing anything: the retry list lives in this file.
        to_retry = runner.results.read()
        runner.reset_logs()
        runner.retry_failed(to_retry)
    else:
        runner.results.clear()
        runner.reset_logs()
        runner.run_groups(build_matrix(skip_fedora, skip_ubi, skip_podman))

    return runner.summarize(started=started)
