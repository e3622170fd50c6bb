"""
CLI argument parsing for ``test-template``, ``test-all-combinations`` and
``python -m dctemplates {test,test-all}``.
"""

import argparse
import os
from pathlib import Path
from typing import Optional

TEMPLATE_EPILOG = """\
Examples:
  test-template fedora
  test-template fedora imageVariant=42
  test-template podman-in-podman imageVariant=v5.7.1
  test-template podman-in-podman imageVariant=v5.7.1 installBuildah=false

Supported environments:
  - macOS + Podman
  - Windows + Podman
  - Linux + Podman
  - Linux + Docker
"""


def _default_root() -> Path:
    return Path(os.environ.get("DCTEMPLATES_ROOT", "."))


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--root",
        type=Path,
        default=_default_root(),
        metavar="DIR",
        help="Repository root holding src/<template> and test/<template> "
             "(default: $DCTEMPLATES_ROOT or the current directory)",
    )
    return common


def _add_template_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "template",
        nargs="?",
        help="Template name (a directory under src/)",
    )
    parser.add_argument(
        "options",
        nargs="*",
        metavar="option=value",
        help="Override a template option default",
    )
    parser.add_argument(
        "--keep-workdir",
        action="store_true",
        help="Do not delete the materialized template directory afterwards",
    )


def _add_matrix_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--skip-fedora", action="store_true", help="Skip Fedora combinations")
    parser.add_argument("--skip-ubi", action="store_true", help="Skip UBI combinations")
    parser.add_argument("--skip-podman", action="store_true", help="Skip Podman-in-Podman combinations")
    parser.add_argument(
        "--only-failed",
        action="store_true",
        help="Re-run only the combinations listed in .test-results.txt",
    )


def template_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="test-template",
        description="Test a single devcontainer template with Podman or Docker.",
        epilog=TEMPLATE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[_common_parser()],
    )
    _add_template_args(parser)
    return parser


def matrix_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="test-all-combinations",
        description="Test all version and variant combinations for all templates.",
        parents=[_common_parser()],
    )
    _add_matrix_args(parser)
    return parser


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse ``python -m dctemplates`` arguments (``test`` / ``test-all``)."""
    parser = argparse.ArgumentParser(
        prog="dctemplates",
        description="Build and smoke-test devcontainer templates.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    test = sub.add_parser(
        "test",
        help="Test one template",
        epilog=TEMPLATE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[_common_parser()],
    )
    _add_template_args(test)

    test_all = sub.add_parser(
        "test-all",
        help="Test every version/variant combination",
        parents=[_common_parser()],
    )
    _add_matrix_args(test_all)

    return parser.parse_args(argv)
