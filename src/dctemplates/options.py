"""
Template option resolution and placeholder substitution.

Each declared option resolves to its override (``name=value`` on the command
line) or its default, and every ``${templateOption:name}`` token in the
template's JSON files and Dockerfiles is replaced with that value.
"""

import re
from pathlib import Path
from typing import Dict, Iterable, List, Mapping

from ._util import debug as _debug_fn, log_info, log_warn
from .schema import OptionAssignment, OptionSource, TemplateDescriptor

PODMAN_IN_PODMAN = "podman-in-podman"
PODMAN_TAG_TOKENS = ("${PODMAN_TAG:-latest}", "${PODMAN_TAG}")

_PLACEHOLDER_RE = re.compile(r"\$\{templateOption:([^}]+)\}")


def _debug(msg: str) -> None:
    _debug_fn("options", msg)


def parse_overrides(args: Iterable[str]) -> Dict[str, str]:
    """Turn ``name=value`` tokens into a dict. The value may itself contain ``=``."""
    overrides: Dict[str, str] = {}
    for arg in args:
        if "=" not in arg:
            log_warn(f"Ignoring argument without '=': {arg}")
            continue
        name, value = arg.split("=", 1)
        overrides[name] = value
        log_info(f"  Override: {name} = {value}")
    return overrides


def resolve_options(
    descriptor: TemplateDescriptor,
    overrides: Mapping[str, str],
) -> List[OptionAssignment]:
    """Pick a value for every declared option: override first, then default.

    Options with neither are left out (their placeholders stay in place).
    """
    for name in overrides:
        if name not in descriptor.options:
            log_warn(f"  Option '{name}' is not declared by {descriptor.id}; ignored")

    assignments: List[OptionAssignment] = []
    for name, option in descriptor.options.items():
        override = overrides.get(name)
        if override:
            assignments.append(OptionAssignment(name=name, value=override, source=OptionSource.OVERRIDE))
            log_info(f"  Setting {name} = {override} (override)")
            continue
        default = option.default_text()
        if default:
            assignments.append(OptionAssignment(name=name, value=default, source=OptionSource.DEFAULT))
            log_info(f"  Setting {name} = {default} (default)")
        else:
            _debug(f"{name}: no override and no default, skipped")
    return assignments


def podman_tag(image_variant: str) -> str:
    """Image tag for quay.io/podman/stable from the ``imageVariant`` option.

    ``stable`` and ``latest`` both map to ``latest``; version numbers gain a
    ``v`` prefix unless they already carry one.
    """
    if image_variant in ("stable", "latest"):
        return "latest"
    if image_variant.startswith("v"):
        return image_variant
    return f"v{image_variant}"


def _target_files(work_dir: Path) -> List[Path]:
    return sorted(
        p for p in Path(work_dir).rglob("*")
        if p.is_file() and (p.suffix == ".json" or p.name == "Dockerfile")
    )


def substitute_tree(work_dir: Path, replacements: Mapping[str, str]) -> int:
    """Replace each literal token with its value in every JSON file and Dockerfile.

    Returns the number of files rewritten.
    """
    if not replacements:
        return 0
    pattern = re.compile("|".join(re.escape(token) for token in replacements))
    changed = 0
    for path in _target_files(work_dir):
        text = path.read_text()
        new_text = pattern.sub(lambda m: replacements[m.group(0)], text)
        if new_text != text:
            path.write_text(new_text)
            changed += 1
            _debug(f"rewrote {path}")
    return changed


def apply_options(
    work_dir: Path,
    template_name: str,
    assignments: List[OptionAssignment],
) -> Dict[str, str]:
    """Substitute resolved options (and the derived PODMAN_TAG) into *work_dir*.

    Returns the token → value map that was applied.
    """
    replacements = {a.placeholder: a.value for a in assignments}

    if template_name == PODMAN_IN_PODMAN:
        variant = next((a.value for a in assignments if a.name == "imageVariant"), None)
        if variant:
            tag = podman_tag(variant)
            log_info(f"  Setting PODMAN_TAG = {tag} (calculated from imageVariant={variant})")
            for token in PODMAN_TAG_TOKENS:
                replacements[token] = tag

    substitute_tree(work_dir, replacements)
    return replacements


def find_unresolved(work_dir: Path) -> List[str]:
    """Option names whose placeholders are still present in *work_dir*."""
    names = set()
    for path in _target_files(work_dir):
        names.update(_PLACEHOLDER_RE.findall(path.read_text()))
    return sorted(names)
