"""
Template catalog: locate templates and their tests under a repository root.

Layout::

    <root>/src/<template>/devcontainer-template.json
    <root>/src/<template>/.devcontainer/{devcontainer.json,Dockerfile}
    <root>/test/<template>/test.sh
"""

import json
from pathlib import Path
from typing import List, Tuple

from pydantic import ValidationError

from ._util import debug as _debug_fn
from .preflight import PreconditionError
from .schema import TemplateDescriptor

DESCRIPTOR_NAME = "devcontainer-template.json"


def _debug(msg: str) -> None:
    _debug_fn("catalog", msg)


def list_templates(root: Path) -> List[str]:
    """Names of directories under ``root/src`` that carry a template descriptor."""
    src = Path(root) / "src"
    try:
        entries = sorted(src.iterdir())
    except OSError:
        return []
    return [e.name for e in entries if e.is_dir() and (e / DESCRIPTOR_NAME).is_file()]


def template_paths(root: Path, name: str) -> Tuple[Path, Path]:
    """Return ``(template_dir, test_dir)`` for *name*.

    Raises PreconditionError if either directory is missing.
    """
    root = Path(root)
    template_dir = root / "src" / name
    test_dir = root / "test" / name
    if not template_dir.is_dir():
        raise PreconditionError(f"Template '{name}' not found in {root / 'src'}/")
    if not test_dir.is_dir():
        raise PreconditionError(f"Test directory not found: {test_dir}")
    return template_dir, test_dir


def load_descriptor(path: Path) -> TemplateDescriptor:
    """Parse and validate a ``devcontainer-template.json`` file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as exc:
        raise PreconditionError(f"Cannot read {path}: {exc}") from exc
    try:
        descriptor = TemplateDescriptor.model_validate(data)
    except ValidationError as exc:
        raise PreconditionError(f"Invalid template descriptor {path}:\n{exc}") from exc
    _debug(f"{descriptor.id}: {len(descriptor.options)} options")
    return descriptor
