"""Markdown summary of a matrix run (.test-logs/summary.md)."""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment

from ..schema import Outcome
from ._env import make_env


def render(
    outcomes: List[Outcome],
    output_path: Path,
    started: Optional[datetime] = None,
    env: Optional[Environment] = None,
) -> Path:
    """Write the summary to *output_path* and return it."""
    if env is None:
        env = make_env()
    finished = datetime.now(timezone.utc)
    passed = [o for o in outcomes if o.passed]
    failed = [o for o in outcomes if not o.passed]
    text = env.get_template("summary.md.j2").render(
        outcomes=outcomes,
        passed=passed,
        failed=failed,
        started=started.isoformat(timespec="seconds") if started else "",
        finished=finished.isoformat(timespec="seconds"),
        log_name=lambda o: o.log_file.name if o.log_file else "",
    )
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding="utf-8")
    return output_path
