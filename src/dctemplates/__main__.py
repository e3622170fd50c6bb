"""
CLI entry points. Parse args and delegate to the runner or the matrix.
"""

import sys
from pathlib import Path
from typing import Optional

from ._util import log_error
from .catalog import list_templates
from .cli import TEMPLATE_EPILOG, matrix_parser, parse_args, template_parser
from .preflight import PreconditionError


def _usage(root: Path) -> int:
    print("Usage: test-template <template-name> [option-name=value ...]")
    print()
    print(TEMPLATE_EPILOG)
    print("Available templates:")
    for name in list_templates(root):
        print(name)
    return 1


def _run_template(args) -> int:
    if not args.template:
        return _usage(args.root)

    from .runner import run_template_test

    try:
        return run_template_test(
            args.root,
            args.template,
            args.options,
            keep_workdir=args.keep_workdir,
        )
    except PreconditionError as e:
        log_error(str(e))
        return 1


def _run_matrix(args) -> int:
    from .matrix import run_matrix

    try:
        return run_matrix(
            args.root,
            skip_fedora=args.skip_fedora,
            skip_ubi=args.skip_ubi,
            skip_podman=args.skip_podman,
            only_failed=args.only_failed,
        )
    except OSError as e:
        log_error(str(e))
        return 1


def template_main(argv: Optional[list] = None) -> int:
    return _run_template(template_parser().parse_args(argv))


def matrix_main(argv: Optional[list] = None) -> int:
    return _run_matrix(matrix_parser().parse_args(argv))


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    if args.command == "test":
        return _run_template(args)
    return _run_matrix(args)


if __name__ == "__main__":
    sys.exit(main())
